from fastapi import APIRouter, Depends, status
from loguru import logger

from opencalendars.api.v1.deps.auth import CurrentUser, token_errors
from opencalendars.api.v1.deps.rate_limit import rate_limit_auth, rate_limit_mutations
from opencalendars.core.auth import (
    generate_access_token,
    generate_refresh_token,
    refresh_access_token,
)
from opencalendars.core.exceptions import http_exceptions
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.schemas import (
    AuthUser,
    DesktopTokenResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    TokenErrorResponse,
)

router = APIRouter()


@router.post(
    "/refresh",
    response_model=RefreshTokenResponse,
    dependencies=[Depends(rate_limit_auth)],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": TokenErrorResponse},
    },
    summary="Refresh access token",
    description="Exchange a desktop refresh token for a new access token.",
)
async def refresh_token(token_payload: RefreshTokenRequest):
    """
    Issue one new access token. The refresh token is not rotated.
    """
    with token_errors():
        token, claims = refresh_access_token(token_payload.refresh_token)

    logger.info(f"Access token refreshed for user {claims.sub}")

    return RefreshTokenResponse(
        token=token,
        user_id=claims.sub,
        email=claims.email,
    )


@router.get(
    "/me",
    response_model=AuthUser,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": TokenErrorResponse},
    },
    summary="Current user",
)
async def read_current_user(current_user: CurrentUser):
    return current_user


@router.post(
    "/desktop-token",
    response_model=DesktopTokenResponse,
    dependencies=[Depends(rate_limit_mutations)],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": TokenErrorResponse},
    },
    summary="Issue desktop token pair",
    description="Hand an access and refresh token pair to the desktop app.",
)
async def issue_desktop_token(current_user: CurrentUser):
    return DesktopTokenResponse(
        token=_issue(generate_access_token, current_user.id, current_user.email),
        refresh_token=_issue(generate_refresh_token, current_user.id, current_user.email),
        user_id=current_user.id,
        email=current_user.email,
    )


def _issue(generate, user_id: str, email: str) -> str:
    try:
        return generate(user_id, email)
    except ConfigurationError as err:
        logger.error(f"Token issuing unavailable: {err}")
        raise http_exceptions.InternalServerErrorException(detail=err.public_message)
