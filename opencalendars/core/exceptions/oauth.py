from opencalendars.core.exceptions.base import CustomException


class OAuthException(CustomException):
    """
    Base exception for provider OAuth flows
    """

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class OAuthProviderNotSupported(OAuthException):
    """
    Provider has no authorization-code flow
    """

    public_message = "oauth_provider_not_supported"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class TokenExchangeError(OAuthException):
    """
    Provider rejected the code exchange or answered with an unusable body
    """

    public_message = "token_exchange_failed"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)
