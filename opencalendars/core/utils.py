from fastapi import Request

from opencalendars.core.config import Environment, settings


def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request headers or remote address

    Forwarding headers are only trusted behind settings.trusted_proxy_hops
    reverse proxies. Each proxy appends the address it saw to X-Forwarded-For,
    so the client is the entry that many hops from the right; entries further
    left are whatever the client sent and are ignored.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address as a string
    """
    if settings.current_environment == Environment.LOCAL:
        return "localhost"

    hops = settings.trusted_proxy_hops
    if hops <= 0:
        return request.client.host if request.client else "unknown"

    if "X-Forwarded-For" in request.headers:
        forwarded = [hop.strip() for hop in request.headers["X-Forwarded-For"].split(",")]
        return forwarded[-hops] if len(forwarded) >= hops else forwarded[0]

    if "X-Real-IP" in request.headers:
        return request.headers["X-Real-IP"].strip()

    if "X-Client-IP" in request.headers:
        return request.headers["X-Client-IP"].strip()

    return request.client.host if request.client else "unknown"


def rate_limit_headers(info: dict) -> dict[str, str]:
    """
    Build X-RateLimit-* headers from a rate limit check result

    Args:
        info: Result of RateLimiter.check

    Returns:
        Header names mapped to their string values
    """
    return {
        "X-RateLimit-Limit": str(info["limit"]),
        "X-RateLimit-Remaining": str(info["remaining"]),
        "X-RateLimit-Reset": str(info["reset_at"]),
    }
