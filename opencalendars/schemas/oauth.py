from datetime import datetime

from opencalendars.core.constants import OAuthProvider
from opencalendars.schemas.base import BaseSchema


class OAuthConnectResponse(BaseSchema):
    """State issued for a provider connection attempt"""

    provider: OAuthProvider
    state: str
    authorization_url: str | None = None


class OAuthTokenResult(BaseSchema):
    """Token response normalized across providers"""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None
    account_name: str | None = None


class ConnectedAccountResponse(BaseSchema):
    """Connected provider account, never including tokens"""

    provider: OAuthProvider
    user_id: str
    account_name: str | None = None
    scope: str | None = None
    expires_at: datetime | None = None
    connected: bool = True
