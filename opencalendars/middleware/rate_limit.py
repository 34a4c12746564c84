from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from opencalendars.core.utils import rate_limit_headers


class RateLimitHeaderMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically add rate limit headers to responses.

    Rate limit dependencies store their result in
    ``request.state.rate_limit_info``; when present, this middleware copies it
    into ``X-RateLimit-Limit``, ``X-RateLimit-Remaining`` and
    ``X-RateLimit-Reset``. Endpoints without a rate limit dependency get no
    headers.

    Example:
        ```python
        from opencalendars.middleware.rate_limit import RateLimitHeaderMiddleware

        app.add_middleware(RateLimitHeaderMiddleware)
        ```
    """

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        info = getattr(request.state, "rate_limit_info", None)
        if info is not None:
            response.headers.update(rate_limit_headers(info))

        return response
