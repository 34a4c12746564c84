from opencalendars.core.exceptions.base import CustomException


class ConfigurationError(CustomException):
    """
    A required secret is not configured. Fatal for the request, not retryable.
    """

    public_message = "Server configuration error"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        super().__init__(message, exception)
