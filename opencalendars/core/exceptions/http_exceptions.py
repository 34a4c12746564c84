from typing import Any, Optional

from fastapi import HTTPException
from starlette import status


class BadRequestException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        The request is malformed or carries parameters the server refuses,
        such as a missing OAuth code or an invalid state token.
        :param detail: Optional detailed message or data about the exception.
        :param headers: Optional headers to include in the response.
        """
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            headers=headers,
        )


class UnauthorizedException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        Authentication is required and was missing, expired or invalid.
        Responses should carry a WWW-Authenticate challenge.
        :param detail: Optional detailed message or data about the exception.
        :param headers: Optional headers to include in the response.
        """
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers=headers,
        )


class TooManyRequestsException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        The caller exceeded its request quota for the current window.
        :param detail: Optional detailed message or data about the exception.
        :param headers: Optional headers to include in the response.
        """

        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers=headers,
        )


class InternalServerErrorException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        The server hit a condition it cannot recover from for this request,
        for example a missing signing or encryption secret.
        :param detail: Optional detailed message or data about the exception.
        :param headers: Optional headers to include in the response.
        """
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            headers=headers,
        )


class BadGatewayException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        An upstream provider returned an invalid or failed response.
        :param detail: Optional detailed message or data about the exception.
        :param headers: Optional headers to include in the response.
        """
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            headers=headers,
        )


class NotFoundException(HTTPException):
    def __init__(
        self,
        detail: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        The requested resource does not exist for this user.
        :param detail: Optional detailed message or data about the exception.
        :param headers: Optional headers to include in the response.
        """
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            headers=headers,
        )
