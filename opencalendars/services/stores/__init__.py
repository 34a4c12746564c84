from .accounts import ConnectedAccountStore
from .base import BaseMemoryStore
from .oauth_state import OAuthStateStore
from .rate_limiter import RateLimitConfig, RateLimiter, RateLimitPreset, RateLimitResult

__all__ = [
    "BaseMemoryStore",
    "ConnectedAccountStore",
    "OAuthStateStore",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitPreset",
    "RateLimitResult",
]
