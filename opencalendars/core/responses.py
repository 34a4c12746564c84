from pydantic import BaseModel


class BadRequestResponse(BaseModel):
    detail: str = "Bad request"


class InternalServerErrorResponse(BaseModel):
    detail: str = "Server configuration error"


class NotFoundResponse(BaseModel):
    detail: str = "Not found"


class TooManyRequestsResponse(BaseModel):
    detail: str = "Too many requests"


class BadGatewayResponse(BaseModel):
    detail: str = "token_exchange_failed"
