from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple
from urllib.parse import urlencode

import httpx
from loguru import logger

from opencalendars.core.config import settings
from opencalendars.core.constants import OAuthProvider
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.core.exceptions.oauth import OAuthProviderNotSupported, TokenExchangeError
from opencalendars.schemas import OAuthTokenResult

GOOGLE_SCOPES = " ".join(
    [
        "https://www.googleapis.com/auth/calendar.readonly",
        "https://www.googleapis.com/auth/calendar.events",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/userinfo.profile",
    ]
)
GITHUB_SCOPES = "repo read:user"
GITHUB_USER_URL = "https://api.github.com/user"

# iCloud connects with an app-specific password instead
CODE_EXCHANGE_PROVIDERS = frozenset(
    {OAuthProvider.GOOGLE, OAuthProvider.GITHUB, OAuthProvider.NOTION}
)


class ProviderEndpoints(NamedTuple):
    authorize_url: str
    token_url: str
    client_id: str
    client_secret: str
    redirect_uri: str


def get_provider_endpoints(provider: OAuthProvider) -> ProviderEndpoints:
    """
    Resolve endpoints and client credentials for a provider.

    Raises:
        OAuthProviderNotSupported: For providers without an authorization-code flow (iCloud)
    """
    match provider:
        case OAuthProvider.GOOGLE:
            return ProviderEndpoints(
                authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
                token_url="https://oauth2.googleapis.com/token",
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                redirect_uri=settings.google_redirect_uri,
            )
        case OAuthProvider.GITHUB:
            return ProviderEndpoints(
                authorize_url="https://github.com/login/oauth/authorize",
                token_url="https://github.com/login/oauth/access_token",
                client_id=settings.github_client_id,
                client_secret=settings.github_client_secret,
                redirect_uri=settings.github_redirect_uri,
            )
        case OAuthProvider.NOTION:
            return ProviderEndpoints(
                authorize_url="https://api.notion.com/v1/oauth/authorize",
                token_url="https://api.notion.com/v1/oauth/token",
                client_id=settings.notion_client_id,
                client_secret=settings.notion_client_secret,
                redirect_uri=settings.notion_redirect_uri,
            )

    raise OAuthProviderNotSupported(f"{provider} does not use an OAuth redirect")


def _ensure_credentials(endpoints: ProviderEndpoints, provider: OAuthProvider) -> None:
    if not endpoints.client_id or not endpoints.client_secret:
        raise ConfigurationError(f"Missing OAuth client credentials for {provider}")


class OAuthClient:
    """
    Authorization URL builder and code exchanger for provider OAuth flows.

    Example:
        ```python
        client = OAuthClient()
        url = client.authorization_url(OAuthProvider.GITHUB, state)
        tokens = await client.exchange_code(OAuthProvider.GITHUB, code)
        ```
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    @staticmethod
    def supports_code_exchange(provider: OAuthProvider) -> bool:
        return provider in CODE_EXCHANGE_PROVIDERS

    def authorization_url(self, provider: OAuthProvider, state: str) -> str | None:
        """
        Build the provider consent URL carrying the state token.

        Returns:
            str | None: Redirect URL, or None for providers without a redirect flow
        """
        try:
            endpoints = get_provider_endpoints(provider)
        except OAuthProviderNotSupported:
            return None

        params: dict[str, str] = {
            "client_id": endpoints.client_id,
            "redirect_uri": endpoints.redirect_uri,
            "state": state,
        }

        if provider == OAuthProvider.GOOGLE:
            params |= {
                "response_type": "code",
                "access_type": "offline",
                "prompt": "consent",
                "scope": GOOGLE_SCOPES,
            }
        elif provider == OAuthProvider.GITHUB:
            params["scope"] = GITHUB_SCOPES
        elif provider == OAuthProvider.NOTION:
            params |= {"response_type": "code", "owner": "user"}

        return f"{endpoints.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, provider: OAuthProvider, code: str) -> OAuthTokenResult:
        """
        Exchange an authorization code for provider tokens.

        Args:
            provider: Provider that issued the code
            code: Authorization code from the callback

        Returns:
            OAuthTokenResult: Normalized tokens

        Raises:
            OAuthProviderNotSupported: For providers without a code exchange
            ConfigurationError: If the provider client credentials are not set
            TokenExchangeError: If the provider rejects the exchange
        """
        endpoints = get_provider_endpoints(provider)
        _ensure_credentials(endpoints, provider)

        async with httpx.AsyncClient(
            timeout=settings.oauth_http_timeout, transport=self._transport
        ) as client:
            try:
                payload = await self._request_tokens(client, provider, endpoints, code)
                account_name = await self._account_name(client, provider, payload)
            except httpx.HTTPError as err:
                logger.error(f"{provider} token exchange failed: {err}")
                raise TokenExchangeError(f"{provider} token exchange failed", err)

        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=_expires_at(payload.get("expires_in")),
            scope=payload.get("scope"),
            account_name=account_name,
        )

    async def _request_tokens(
        self,
        client: httpx.AsyncClient,
        provider: OAuthProvider,
        endpoints: ProviderEndpoints,
        code: str,
    ) -> dict[str, Any]:
        if provider == OAuthProvider.GOOGLE:
            response = await client.post(
                endpoints.token_url,
                data={
                    "client_id": endpoints.client_id,
                    "client_secret": endpoints.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": endpoints.redirect_uri,
                },
            )
        elif provider == OAuthProvider.GITHUB:
            response = await client.post(
                endpoints.token_url,
                json={
                    "client_id": endpoints.client_id,
                    "client_secret": endpoints.client_secret,
                    "code": code,
                    "redirect_uri": endpoints.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
        else:
            response = await client.post(
                endpoints.token_url,
                json={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": endpoints.redirect_uri,
                },
                auth=(endpoints.client_id, endpoints.client_secret),
            )

        if response.is_error:
            logger.error(
                f"{provider} token exchange failed: {response.status_code} {response.text}"
            )
            raise TokenExchangeError(f"{provider} token exchange failed")

        payload = _json_body(response, provider)
        if not isinstance(payload, dict) or not payload.get("access_token"):
            logger.error(f"{provider} token exchange returned no access token")
            raise TokenExchangeError(f"{provider} returned no access token")

        return payload

    async def _account_name(
        self, client: httpx.AsyncClient, provider: OAuthProvider, payload: dict[str, Any]
    ) -> str | None:
        if provider == OAuthProvider.NOTION:
            return payload.get("workspace_name") or "Notion Workspace"

        if provider == OAuthProvider.GITHUB:
            response = await client.get(
                GITHUB_USER_URL,
                headers={
                    "Authorization": f"Bearer {payload['access_token']}",
                    "Accept": "application/vnd.github.v3+json",
                },
            )
            if response.is_error:
                raise TokenExchangeError("Failed to fetch GitHub user info")

            github_user = _json_body(response, provider)
            if not isinstance(github_user, dict):
                raise TokenExchangeError("GitHub user info is not an object")

            return github_user.get("name") or github_user.get("login") or "GitHub"

        return None


def _json_body(response: httpx.Response, provider: OAuthProvider) -> Any:
    try:
        return response.json()
    except ValueError as err:
        logger.error(f"{provider} answered with a non-JSON body: {response.status_code}")
        raise TokenExchangeError(f"{provider} answered with a non-JSON body", err)


def _expires_at(expires_in: Any) -> datetime | None:
    if not isinstance(expires_in, int):
        return None

    return datetime.now(UTC) + timedelta(seconds=expires_in)
