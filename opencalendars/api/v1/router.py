from fastapi import APIRouter, status

from opencalendars.api.v1.endpoints import auth, oauth
from opencalendars.core import responses

api_v1_router = APIRouter(prefix="/api/v1")

RATE_LIMIT_HEADERS = {
    "X-RateLimit-Limit": {
        "description": "Maximum requests allowed in the window",
        "schema": {"type": "integer", "example": 5},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests remaining in current window",
        "schema": {"type": "integer", "example": 4},
    },
    "X-RateLimit-Reset": {
        "description": "Unix timestamp when the current window ends",
        "schema": {"type": "integer", "example": 1767225600},
    },
}

COMMON_RESPONSES = {
    status.HTTP_429_TOO_MANY_REQUESTS: {
        "model": responses.TooManyRequestsResponse,
        "headers": RATE_LIMIT_HEADERS,
    },
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "model": responses.InternalServerErrorResponse,
    },
}


api_v1_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth"],
    responses=COMMON_RESPONSES,
)

api_v1_router.include_router(
    oauth.router,
    prefix="/oauth",
    tags=["OAuth"],
    responses=COMMON_RESPONSES,
)
