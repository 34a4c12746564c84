from datetime import UTC, datetime
from typing import TypedDict

from loguru import logger

from opencalendars.core.constants import OAuthProvider
from opencalendars.core.encryption import TokenCodec
from opencalendars.schemas import ConnectedAccountResponse, OAuthTokenResult


class ConnectedAccount(TypedDict):
    user_id: str
    provider: OAuthProvider
    access_token: str  # encrypted
    refresh_token: str | None  # encrypted
    expires_at: datetime | None
    scope: str | None
    account_name: str | None
    connected_at: datetime


class ConnectedAccountStore:
    """
    Provider accounts connected by users, one per user and provider.

    Tokens are encrypted with the token codec before they are kept and are
    only decrypted on explicit request. Reconnecting a provider overwrites
    the previous account.

    Note:
        Process-local like the other stores; accounts are lost on restart.
    """

    def __init__(self, codec: TokenCodec):
        self.codec = codec
        self._accounts: dict[tuple[str, OAuthProvider], ConnectedAccount] = {}

    def __len__(self) -> int:
        return len(self._accounts)

    def save(
        self, user_id: str, provider: OAuthProvider, tokens: OAuthTokenResult
    ) -> ConnectedAccountResponse:
        """
        Encrypt and store the tokens of a freshly connected account.

        Raises:
            ConfigurationError: If no encryption secret is configured
        """
        provider = OAuthProvider(provider)
        account = ConnectedAccount(
            user_id=user_id,
            provider=provider,
            access_token=self.codec.encrypt(tokens.access_token),
            refresh_token=self.codec.encrypt_if_needed(tokens.refresh_token),
            expires_at=tokens.expires_at,
            scope=tokens.scope,
            account_name=tokens.account_name,
            connected_at=datetime.now(UTC),
        )
        self._accounts[(user_id, provider)] = account

        logger.info(f"Connected {provider} account for user {user_id}")

        return self._to_response(account)

    def get_access_token(self, user_id: str, provider: OAuthProvider) -> str | None:
        """Decrypted access token for an account, or None if absent or unreadable"""
        account = self._accounts.get((user_id, OAuthProvider(provider)))
        if account is None:
            return None

        return self.codec.decrypt_if_needed(account["access_token"])

    def get_refresh_token(self, user_id: str, provider: OAuthProvider) -> str | None:
        account = self._accounts.get((user_id, OAuthProvider(provider)))
        if account is None:
            return None

        return self.codec.decrypt_if_needed(account["refresh_token"])

    def list_for_user(self, user_id: str) -> list[ConnectedAccountResponse]:
        return [
            self._to_response(account)
            for (owner, _), account in self._accounts.items()
            if owner == user_id
        ]

    def disconnect(self, user_id: str, provider: OAuthProvider) -> bool:
        removed = self._accounts.pop((user_id, OAuthProvider(provider)), None)
        if removed is not None:
            logger.info(f"Disconnected {provider} account for user {user_id}")

        return removed is not None

    @staticmethod
    def _to_response(account: ConnectedAccount) -> ConnectedAccountResponse:
        return ConnectedAccountResponse(
            provider=account["provider"],
            user_id=account["user_id"],
            account_name=account["account_name"],
            scope=account["scope"],
            expires_at=account["expires_at"],
        )
