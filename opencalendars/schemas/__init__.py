from .base import BaseSchema
from .health_check import HealthCheckResponse
from .oauth import ConnectedAccountResponse, OAuthConnectResponse, OAuthTokenResult
from .token import (
    AccessTokenClaims,
    DesktopTokenResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    TokenErrorResponse,
)
from .user import AuthUser

__all__ = [
    "BaseSchema",
    "HealthCheckResponse",
    "ConnectedAccountResponse",
    "OAuthConnectResponse",
    "OAuthTokenResult",
    "AccessTokenClaims",
    "DesktopTokenResponse",
    "RefreshTokenRequest",
    "RefreshTokenResponse",
    "TokenErrorResponse",
    "AuthUser",
]
