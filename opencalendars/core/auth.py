from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Optional

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError
from loguru import logger
from pydantic import ValidationError

from opencalendars.core.config import settings
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.core.exceptions.token import InvalidTokenError, TokenExpiredError
from opencalendars.schemas import AccessTokenClaims

TOKEN_ISSUER = "opencalendar-api"

# Claims every desktop token must carry
_REQUIRED_CLAIMS = {
    "require_aud": True,
    "require_exp": True,
    "require_iat": True,
    "require_iss": True,
    "require_sub": True,
}


class TokenAudience(StrEnum):
    """Audience values separating token classes. Verification requires an exact match."""

    ACCESS = "desktop-app"
    REFRESH = "refresh"
    DESKTOP_REFRESH = "desktop-refresh"


def _get_secret() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("JWT_SECRET must be set to issue or verify desktop tokens")

    return settings.jwt_secret


def _encode(user_id: str, email: str, audience: TokenAudience, expires_delta: timedelta) -> str:
    now = datetime.now(UTC)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "aud": audience.value,
        "iss": TOKEN_ISSUER,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, _get_secret(), algorithm=settings.jwt_algorithm)


def generate_access_token(
    user_id: str,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a short-lived access token for the desktop app
    Args:
        user_id: Token subject
        email: User email, echoed back on refresh
        expires_delta: Token lifetime, defaults to settings.jwt_expiry

    Returns:
        Encoded JWT access token
    """
    if expires_delta is None:
        expires_delta = timedelta(seconds=settings.jwt_expiry)

    return _encode(user_id, email, TokenAudience.ACCESS, expires_delta)


def generate_refresh_token(
    user_id: str,
    email: str,
    audience: TokenAudience = TokenAudience.DESKTOP_REFRESH,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a long-lived refresh token
    Args:
        user_id: Token subject
        email: User email
        audience: One of the refresh audiences
        expires_delta: Token lifetime, defaults to settings.jwt_refresh_expiry

    Returns:
        Encoded JWT refresh token
    """
    if audience == TokenAudience.ACCESS:
        raise ValueError("Refresh tokens cannot carry the access audience")

    if expires_delta is None:
        expires_delta = timedelta(seconds=settings.jwt_refresh_expiry)

    return _encode(user_id, email, audience, expires_delta)


def verify_token(token: str, expected_audience: TokenAudience) -> AccessTokenClaims:
    """
    Verify signature, expiry, issuer and audience of a desktop token.

    Args:
        token: Encoded JWT
        expected_audience: Audience the token must have been issued for

    Returns:
        AccessTokenClaims: Decoded claims

    Raises:
        TokenExpiredError: If the token is past its exp claim
        InvalidTokenError: For any other verification failure
        ConfigurationError: If JWT_SECRET is not set
    """
    secret = _get_secret()

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            audience=expected_audience.value,
            issuer=TOKEN_ISSUER,
            options=_REQUIRED_CLAIMS,
        )
    except ExpiredSignatureError as err:
        raise TokenExpiredError(exception=err)
    except JWTClaimsError as err:
        logger.debug(f"Token claims rejected for audience {expected_audience.value}: {err}")
        raise InvalidTokenError(exception=err)
    except JWTError as err:
        raise InvalidTokenError(exception=err)

    try:
        return AccessTokenClaims.model_validate(payload)
    except ValidationError as err:
        raise InvalidTokenError(exception=err)


def refresh_access_token(refresh_token: str) -> tuple[str, AccessTokenClaims]:
    """
    Exchange a desktop refresh token for one new access token.

    The refresh token itself is neither rotated nor revoked.

    Returns:
        tuple[str, AccessTokenClaims]: New access token and the refresh token claims
    """
    claims = verify_token(refresh_token, TokenAudience.DESKTOP_REFRESH)
    return generate_access_token(claims.sub, claims.email), claims


def is_token_expiring_soon(token: str, within: timedelta = timedelta(minutes=5)) -> bool:
    """
    Check whether a token expires within the given window, without verifying it.
    Undecodable tokens and tokens without exp count as expiring.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return True

    expires_at = claims.get("exp")
    if not isinstance(expires_at, (int, float)):
        return True

    return datetime.now(UTC) + within >= datetime.fromtimestamp(expires_at, UTC)
