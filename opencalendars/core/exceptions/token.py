from opencalendars.core.exceptions.base import CustomException


class TokenException(CustomException):
    """
    Base exception for desktop JWT verification
    """

    public_message = "Invalid token"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class TokenExpiredError(TokenException):
    """
    Token signature is valid but its exp claim has passed.

    Kept distinguishable so clients know to refresh instead of logging in again.
    """

    public_message = "Token expired"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class InvalidTokenError(TokenException):
    """
    Bad signature, malformed token, missing claims or wrong audience
    """

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)
