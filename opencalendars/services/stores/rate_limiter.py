import math
import time
from typing import NamedTuple, TypedDict

from loguru import logger

from opencalendars.core.config import settings
from opencalendars.core.exceptions.rate_limiter import RateLimitConfigurationError
from opencalendars.services.stores.base import BaseMemoryStore, Clock


class RateLimitConfig(NamedTuple):
    max_requests: int
    window_seconds: int


class RateLimitResult(TypedDict):
    """Rate limit information returned by check operations"""

    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # Unix timestamp (seconds) when the current window ends


class RateLimitWindow(TypedDict):
    count: int
    reset_at: float


class RateLimitPreset:
    """
    Preset configurations, stricter for authentication than for reads.

    Values come from settings so deployments can tune them without code changes.
    """

    AUTH = RateLimitConfig(settings.rate_limit_auth, settings.rate_limit_window)
    MUTATIONS = RateLimitConfig(settings.rate_limit_mutations, settings.rate_limit_window)
    READS = RateLimitConfig(settings.rate_limit_reads, settings.rate_limit_window)
    SYNC = RateLimitConfig(settings.rate_limit_sync, settings.rate_limit_window)


class RateLimiter(BaseMemoryStore):
    """
    In-memory rate limiter using a fixed window algorithm.

    Requests are bucketed by ``floor(now / window)``; every request in the
    same bucket shares one counter and the counter starts over at the next
    bucket. A burst straddling a bucket boundary can therefore see up to
    twice the configured rate. This is the accepted tradeoff of a fixed
    window; do not swap in a sliding window here without a design decision.

    Example:
        ```python
        result = rate_limiter.check(f"auth:{ip}", RateLimitPreset.AUTH)

        if not result["allowed"]:
            raise TooManyRequestsException(headers=...)
        ```
    """

    def __init__(self, sweep_interval: float, clock: Clock = time.time):
        super().__init__(sweep_interval, clock)
        self._windows: dict[str, RateLimitWindow] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """
        Count a request for an identifier and report whether it is allowed.

        Args:
            identifier: Caller-chosen key, e.g. "auth:192.168.1.1" or a user id
            config: Maximum requests per window and window length in seconds

        Returns:
            RateLimitResult: Whether the request is allowed, with limit details

        Raises:
            RateLimitConfigurationError: If max_requests or window_seconds is not positive

        Note:
            Requests are counted even after the limit is exceeded, so a caller
            that keeps retrying stays blocked until the window ends.
        """
        if config.max_requests <= 0:
            raise RateLimitConfigurationError(
                f"Rate limit must be positive, got {config.max_requests}"
            )
        if config.window_seconds <= 0:
            raise RateLimitConfigurationError(
                f"Rate limit window must be positive, got {config.window_seconds}"
            )

        now = self.now()
        window_index = math.floor(now / config.window_seconds)
        key = f"{identifier}:{window_index}"

        window = self._windows.get(key)
        if window is None or window["reset_at"] <= now:
            window = RateLimitWindow(
                count=0,
                reset_at=(window_index + 1) * config.window_seconds,
            )
            self._windows[key] = window

        window["count"] += 1

        return RateLimitResult(
            allowed=window["count"] <= config.max_requests,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - window["count"]),
            reset_at=math.ceil(window["reset_at"]),
        )

    def reset(self, identifier: str) -> int:
        """
        Drop every window recorded for an identifier.

        Returns:
            int: Number of windows removed

        Note:
            Useful for manual intervention, e.g. unblocking a user.
        """
        prefix = f"{identifier}:"
        keys = [
            key
            for key in self._windows
            if key.startswith(prefix) and key[len(prefix) :].lstrip("-").isdigit()
        ]

        for key in keys:
            self._windows.pop(key, None)

        if keys:
            logger.info(f"Rate limit reset for identifier {identifier}")

        return len(keys)

    def sweep(self) -> int:
        now = self.now()
        expired = [key for key, window in self._windows.items() if window["reset_at"] < now]

        for key in expired:
            self._windows.pop(key, None)

        return len(expired)
