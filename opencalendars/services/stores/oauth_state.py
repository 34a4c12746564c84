import secrets
import time
from typing import TypedDict

from loguru import logger

from opencalendars.core.constants import OAuthProvider
from opencalendars.services.stores.base import BaseMemoryStore, Clock

STATE_BYTES = 32  # 256 bits of entropy


class OAuthStateEntry(TypedDict):
    user_id: str
    provider: OAuthProvider
    created_at: float


class OAuthStateStore(BaseMemoryStore):
    """
    Single-use anti-CSRF state tokens for OAuth redirects.

    A state is issued when a user starts connecting a provider and is
    consumed by the callback. Validation failures are reported to callers as
    a single ``None`` outcome; the cause is only logged.

    Example:
        ```python
        state = store.generate_state(user.id, OAuthProvider.GITHUB)
        # ... provider redirects back with ?state=...
        user_id = store.validate_state(state, OAuthProvider.GITHUB)
        if user_id is None:
            raise BadRequestException("oauth_state_invalid")
        ```
    """

    def __init__(self, ttl_seconds: float, sweep_interval: float, clock: Clock = time.time):
        super().__init__(sweep_interval, clock)

        self.ttl_seconds = ttl_seconds
        self._states: dict[str, OAuthStateEntry] = {}

    def __len__(self) -> int:
        return len(self._states)

    def _is_expired(self, entry: OAuthStateEntry, now: float) -> bool:
        return entry["created_at"] < now - self.ttl_seconds

    def generate_state(self, user_id: str, provider: OAuthProvider) -> str:
        """
        Issue a state token for a user starting an OAuth flow.

        Args:
            user_id: User initiating the flow
            provider: Provider the flow is for

        Returns:
            str: URL-safe random state token
        """
        provider = OAuthProvider(provider)
        state = secrets.token_urlsafe(STATE_BYTES)

        self._states[state] = OAuthStateEntry(
            user_id=user_id,
            provider=provider,
            created_at=self.now(),
        )

        return state

    def validate_state(self, state: str, expected_provider: OAuthProvider) -> str | None:
        """
        Validate and consume a state token.

        Args:
            state: State returned by the provider callback
            expected_provider: Provider whose callback received the state

        Returns:
            str | None: The user id the state was issued to, or None if the state
            is unknown, expired or was issued for another provider
        """
        entry = self._states.get(state)

        if entry is None:
            logger.warning("OAuth state validation failed: state not found")
            return None

        if self._is_expired(entry, self.now()):
            logger.warning("OAuth state validation failed: state expired")
            self._states.pop(state, None)
            return None

        # The entry is kept on mismatch, so a retry on the right provider
        # can still succeed before the TTL runs out
        if entry["provider"] != expected_provider:
            logger.warning(
                f"OAuth state validation failed: provider mismatch "
                f"(expected {expected_provider}, got {entry['provider']})"
            )
            return None

        del self._states[state]

        return entry["user_id"]

    def sweep(self) -> int:
        now = self.now()
        expired = [state for state, entry in self._states.items() if self._is_expired(entry, now)]

        for state in expired:
            self._states.pop(state, None)

        return len(expired)
