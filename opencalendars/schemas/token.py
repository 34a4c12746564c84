from pydantic import AliasChoices, Field

from opencalendars.schemas.base import BaseSchema


class AccessTokenClaims(BaseSchema):
    """Claims carried by desktop access and refresh tokens"""

    sub: str
    email: str
    iat: int
    exp: int
    aud: str
    iss: str


class RefreshTokenRequest(BaseSchema):
    """Body of the refresh endpoint, also accepting the desktop client's camelCase key"""

    refresh_token: str = Field(
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


class RefreshTokenResponse(BaseSchema):
    """New access token issued from a refresh token"""

    token: str
    user_id: str
    email: str


class DesktopTokenResponse(BaseSchema):
    """Token pair handed to the desktop app after web login"""

    token: str
    refresh_token: str
    user_id: str
    email: str


class TokenErrorResponse(BaseSchema):
    """401 body telling the client whether to refresh or log in again"""

    error: str
    code: str
