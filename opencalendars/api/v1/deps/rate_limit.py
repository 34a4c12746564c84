from typing import Annotated

from fastapi import Depends, Request
from loguru import logger

from opencalendars.api.v1.deps.auth import CurrentUser
from opencalendars.api.v1.deps.stores import get_rate_limiter
from opencalendars.core.constants import RateLimitPrefix
from opencalendars.core.exceptions.http_exceptions import TooManyRequestsException
from opencalendars.core.utils import get_client_ip, rate_limit_headers
from opencalendars.services.stores import RateLimitConfig, RateLimiter, RateLimitPreset

Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]


def _enforce(
    request: Request,
    rate_limiter: RateLimiter,
    key: str,
    config: RateLimitConfig,
    detail: str,
) -> None:
    result = rate_limiter.check(key, config)

    # Store rate limit info in request state for middleware
    request.state.rate_limit_info = result

    if not result["allowed"]:
        logger.warning(f"Rate limit exceeded. Key: {key}, Limit: {result['limit']}")
        raise TooManyRequestsException(detail=detail, headers=rate_limit_headers(result))


async def rate_limit_auth(request: Request, rate_limiter: Limiter) -> None:
    """
    Strict rate limiting for authentication endpoints (IP-based).

    Limit: 5 requests per minute per IP (settings.rate_limit_auth)
    Use case: Token refresh, desktop token hand-off

    Raises:
        TooManyRequestsException: When rate limit is exceeded (HTTP 429)

    Example:
        ```python
        @router.post("/refresh", dependencies=[Depends(rate_limit_auth)])
        async def refresh(...):
            pass
        ```
    """
    _enforce(
        request,
        rate_limiter,
        key=f"{RateLimitPrefix.AUTH}{get_client_ip(request)}",
        config=RateLimitPreset.AUTH,
        detail="Too many authentication attempts. Please try again later.",
    )


async def rate_limit_auth_user(
    request: Request, rate_limiter: Limiter, current_user: CurrentUser
) -> None:
    """
    Authentication preset keyed by user instead of IP.

    Starting an OAuth connection is an authentication step, but the caller is
    already known, so users behind one NAT do not share a quota.
    """
    _enforce(
        request,
        rate_limiter,
        key=f"{RateLimitPrefix.AUTH}{current_user.id}",
        config=RateLimitPreset.AUTH,
        detail="Too many authentication attempts. Please try again later.",
    )


async def rate_limit_reads(
    request: Request, rate_limiter: Limiter, current_user: CurrentUser
) -> None:
    """
    Lenient rate limiting for authenticated GET endpoints (user-based).

    Limit: 100 requests per minute per user (settings.rate_limit_reads)
    """
    _enforce(
        request,
        rate_limiter,
        key=f"{RateLimitPrefix.READS}{current_user.id}",
        config=RateLimitPreset.READS,
        detail="Rate limit exceeded. Please slow down your requests.",
    )


async def rate_limit_mutations(
    request: Request, rate_limiter: Limiter, current_user: CurrentUser
) -> None:
    """
    Moderate rate limiting for authenticated POST, PUT and DELETE endpoints (user-based).

    Limit: 30 requests per minute per user (settings.rate_limit_mutations)
    """
    _enforce(
        request,
        rate_limiter,
        key=f"{RateLimitPrefix.MUTATIONS}{current_user.id}",
        config=RateLimitPreset.MUTATIONS,
        detail="Rate limit exceeded. Please slow down your requests.",
    )


async def rate_limit_sync(request: Request, rate_limiter: Limiter) -> None:
    """
    Strict rate limiting for endpoints that call provider APIs (IP-based).

    Limit: 10 requests per minute per IP (settings.rate_limit_sync)
    Use case: OAuth callbacks, which exchange codes with the provider

    Note:
        Keyed by IP because provider callbacks arrive without a bearer token.
    """
    _enforce(
        request,
        rate_limiter,
        key=f"{RateLimitPrefix.SYNC}{get_client_ip(request)}",
        config=RateLimitPreset.SYNC,
        detail="Too many sync requests. Please try again later.",
    )
