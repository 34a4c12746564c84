from opencalendars.schemas.base import BaseSchema


class AuthUser(BaseSchema):
    """User resolved from a verified access token"""

    id: str
    email: str
