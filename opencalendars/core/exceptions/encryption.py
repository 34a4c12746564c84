from opencalendars.core.exceptions.base import CustomException


class EncryptionException(CustomException):
    """
    Base exception for the token codec.

    Every sub-case shares one public message; wrong key, tampered data and
    malformed input look the same to callers.
    """

    public_message = "Unable to decrypt value"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class InputError(EncryptionException):
    """
    Empty value passed to encrypt or decrypt
    """

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class FormatError(EncryptionException):
    """
    Encrypted value is not iv:tag:ciphertext
    """

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class AuthenticationError(EncryptionException):
    """
    Authentication tag did not verify (wrong key or modified data)
    """

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)
