class CustomException(Exception):
    """
    Base for all domain exceptions.

    ``message`` is meant for logs and may name the exact cause.
    ``public_message`` is fixed per class and is the only text that may reach
    a client, so sub-cases sharing a public message stay indistinguishable.
    """

    public_message: str = "Internal error"

    def __init__(self, message: str | None = None, exception: Exception | None = None):
        self.message = message or self.public_message
        self.exception = exception
        super().__init__(self.message)

    def __str__(self):
        if self.exception:
            return f"{self.message}\nException: {self.exception}"

        return self.message
