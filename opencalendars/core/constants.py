from enum import StrEnum


class OAuthProvider(StrEnum):
    """External services a user can connect"""

    GOOGLE = "google"
    ICLOUD = "icloud"  # app-specific password, no OAuth redirect
    GITHUB = "github"
    NOTION = "notion"


class RateLimitPrefix:
    """
    Centralized registry of all rate limit key prefixes.

    All rate limit keys follow the pattern: ratelimit:{category}:{identifier}
    where identifier is an IP address or user ID.

    Example:
        ```python
        from opencalendars.core.constants import RateLimitPrefix

        key = f"{RateLimitPrefix.AUTH}{ip_address}"
        # Result: "ratelimit:auth:192.168.1.1"
        ```
    """

    # Token refresh and OAuth connect
    AUTH = "ratelimit:auth:"

    # POST, PUT, DELETE
    MUTATIONS = "ratelimit:mutations:"

    # GET
    READS = "ratelimit:reads:"

    # Calls that fan out to provider APIs
    SYNC = "ratelimit:sync:"
