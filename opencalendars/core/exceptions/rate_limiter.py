from opencalendars.core.exceptions.base import CustomException


class RateLimiterException(CustomException):
    """
    Base exception for Rate Limiter
    """

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)


class RateLimitConfigurationError(RateLimiterException):
    """
    Invalid rate limit configuration
    """

    public_message = "Server configuration error"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)
