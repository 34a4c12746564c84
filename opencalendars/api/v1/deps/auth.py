from contextlib import contextmanager
from typing import Annotated, Iterator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from opencalendars.core.auth import TokenAudience, verify_token
from opencalendars.core.exceptions import http_exceptions
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.core.exceptions.token import InvalidTokenError, TokenExpiredError
from opencalendars.schemas import AccessTokenClaims, AuthUser

# Bearer scheme for desktop access tokens; missing credentials are handled below
bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_EXPIRED = "TOKEN_EXPIRED"
INVALID_TOKEN = "INVALID_TOKEN"


def token_error(error: str, code: str) -> http_exceptions.UnauthorizedException:
    """
    Build a 401 whose body tells the client whether to refresh or log in again.

    Args:
        error: Human readable message
        code: TOKEN_EXPIRED or INVALID_TOKEN

    Returns:
        UnauthorizedException carrying a Bearer challenge
    """
    return http_exceptions.UnauthorizedException(
        detail={"error": error, "code": code},
        headers={"WWW-Authenticate": "Bearer"},
    )


@contextmanager
def token_errors() -> Iterator[None]:
    """
    Translate token verification failures raised in the block into HTTP errors

    Raises:
        UnauthorizedException: If the token is expired or invalid
        InternalServerErrorException: If JWT_SECRET is not configured
    """
    try:
        yield
    except TokenExpiredError as err:
        raise token_error(err.public_message, TOKEN_EXPIRED)
    except InvalidTokenError as err:
        raise token_error(err.public_message, INVALID_TOKEN)
    except ConfigurationError as err:
        logger.error(f"Token verification unavailable: {err}")
        raise http_exceptions.InternalServerErrorException(detail=err.public_message)


def verify_or_raise(token: str, audience: TokenAudience) -> AccessTokenClaims:
    """
    Verify a token and translate verification failures into HTTP errors

    Args:
        token: Encoded JWT
        audience: Audience the token must carry

    Returns:
        Decoded claims
    """
    with token_errors():
        return verify_token(token, audience)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AuthUser:
    """
    Get current authenticated user from a desktop access token

    Args:
        credentials: Bearer credentials from the Authorization header

    Returns:
        Current authenticated user

    Raises:
        UnauthorizedException: If the token is missing or fails verification
    """
    if credentials is None or not credentials.credentials:
        raise token_error("Missing bearer token", INVALID_TOKEN)

    claims = verify_or_raise(credentials.credentials, TokenAudience.ACCESS)

    return AuthUser(id=claims.sub, email=claims.email)


CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
