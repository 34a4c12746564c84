from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from opencalendars.core.auth import generate_access_token
from opencalendars.core.constants import OAuthProvider
from opencalendars.schemas import AuthUser
from opencalendars.services.oauth_client import GITHUB_USER_URL, OAuthClient
from opencalendars.services.stores import RateLimiter

CREDENTIALS = {
    "google_client_id": "google-id",
    "google_client_secret": "google-secret",
    "github_client_id": "github-id",
    "github_client_secret": "github-secret",
    "notion_client_id": "notion-id",
    "notion_client_secret": "notion-secret",
}


def provider_handler(request: httpx.Request) -> httpx.Response:
    """Fake provider token and profile endpoints"""
    if request.url.host == "oauth2.googleapis.com":
        return httpx.Response(
            200,
            json={
                "access_token": "google-access",
                "refresh_token": "google-refresh",
                "expires_in": 3600,
                "scope": "https://www.googleapis.com/auth/calendar.events",
            },
        )
    if request.url.host == "github.com":
        return httpx.Response(200, json={"access_token": "github-access", "scope": "repo"})
    if str(request.url) == GITHUB_USER_URL:
        return httpx.Response(200, json={"login": "octocat", "name": None})

    return httpx.Response(404)


@pytest.fixture(autouse=True)
def provider_credentials():
    with patch.multiple("opencalendars.services.oauth_client.settings", **CREDENTIALS):
        yield


@pytest.fixture
def fake_provider(test_app: FastAPI) -> OAuthClient:
    test_app.state.oauth_client = OAuthClient(transport=httpx.MockTransport(provider_handler))
    return test_app.state.oauth_client


@pytest.mark.anyio
class TestConnect:
    """Test suite for GET /api/v1/oauth/{provider}/connect endpoint"""

    async def test_connect_google(
        self, test_app: FastAPI, client: AsyncClient, user: AuthUser, auth_headers
    ):
        response = await client.get("/api/v1/oauth/google/connect", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "google"

        query = parse_qs(urlparse(data["authorization_url"]).query)
        assert query["state"] == [data["state"]]
        assert len(test_app.state.oauth_states) == 1

    async def test_connect_icloud_has_no_redirect(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/oauth/icloud/connect", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["authorization_url"] is None
        assert data["state"]

    async def test_connect_unknown_provider(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/oauth/outlook/connect", headers=auth_headers)

        assert response.status_code == 422

    async def test_connect_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/v1/oauth/google/connect")

        assert response.status_code == 401

    async def test_connect_is_rate_limited_per_user(
        self, test_app: FastAPI, client: AsyncClient, clock, auth_headers, other_user: AuthUser
    ):
        test_app.state.rate_limiter = RateLimiter(sweep_interval=600, clock=clock)

        for _ in range(5):
            await client.get("/api/v1/oauth/github/connect", headers=auth_headers)

        response = await client.get("/api/v1/oauth/github/connect", headers=auth_headers)

        assert response.status_code == 429
        assert response.headers["X-RateLimit-Remaining"] == "0"

        other_token = generate_access_token(other_user.id, other_user.email)
        response = await client.get(
            "/api/v1/oauth/github/connect", headers={"Authorization": f"Bearer {other_token}"}
        )
        assert response.status_code == 200


@pytest.mark.anyio
class TestCallback:
    """Test suite for GET /api/v1/oauth/{provider}/callback endpoint"""

    async def test_provider_error(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/oauth/google/callback", params={"error": "access_denied"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "access_denied"

    @pytest.mark.parametrize(
        "params",
        [{}, {"code": "abc"}, {"state": "xyz"}],
    )
    async def test_missing_parameters(self, client: AsyncClient, params: dict[str, str]):
        response = await client.get("/api/v1/oauth/google/callback", params=params)

        assert response.status_code == 400
        assert response.json()["detail"] == "missing_parameters"

    async def test_unknown_state(self, client: AsyncClient, fake_provider: OAuthClient):
        response = await client.get(
            "/api/v1/oauth/google/callback", params={"code": "abc", "state": "never-issued"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "oauth_state_invalid"

    async def test_connect_then_callback(
        self,
        test_app: FastAPI,
        client: AsyncClient,
        fake_provider: OAuthClient,
        user: AuthUser,
        auth_headers,
    ):
        connect = await client.get("/api/v1/oauth/google/connect", headers=auth_headers)
        state = connect.json()["state"]

        response = await client.get(
            "/api/v1/oauth/google/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "google"
        assert data["user_id"] == user.id
        assert data["connected"] is True
        assert "access_token" not in data

        accounts = test_app.state.accounts
        assert accounts.get_access_token(user.id, OAuthProvider.GOOGLE) == "google-access"
        assert accounts.get_refresh_token(user.id, OAuthProvider.GOOGLE) == "google-refresh"

        # The state is single use
        replay = await client.get(
            "/api/v1/oauth/google/callback", params={"code": "auth-code", "state": state}
        )
        assert replay.status_code == 400
        assert replay.json()["detail"] == "oauth_state_invalid"

    async def test_state_for_other_provider_rejected(
        self, test_app: FastAPI, client: AsyncClient, fake_provider: OAuthClient, user: AuthUser
    ):
        state = test_app.state.oauth_states.generate_state(user.id, OAuthProvider.GOOGLE)

        response = await client.get(
            "/api/v1/oauth/github/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "oauth_state_invalid"

    async def test_github_account_name(
        self, test_app: FastAPI, client: AsyncClient, fake_provider: OAuthClient, user: AuthUser
    ):
        state = test_app.state.oauth_states.generate_state(user.id, OAuthProvider.GITHUB)

        response = await client.get(
            "/api/v1/oauth/github/callback", params={"code": "auth-code", "state": state}
        )

        assert response.status_code == 200
        assert response.json()["account_name"] == "octocat"

    async def test_token_exchange_failure(
        self, test_app: FastAPI, client: AsyncClient, user: AuthUser
    ):
        test_app.state.oauth_client = OAuthClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(400, json={"error": "invalid_grant"})
            )
        )
        state = test_app.state.oauth_states.generate_state(user.id, OAuthProvider.GOOGLE)

        response = await client.get(
            "/api/v1/oauth/google/callback", params={"code": "bad-code", "state": state}
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "token_exchange_failed"
        assert len(test_app.state.accounts) == 0

    async def test_non_json_provider_reply_is_bad_gateway(
        self, test_app: FastAPI, client: AsyncClient, user: AuthUser, auth_headers
    ):
        test_app.state.oauth_client = OAuthClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, text="<html>oops</html>")
            )
        )
        connect = await client.get("/api/v1/oauth/google/connect", headers=auth_headers)

        response = await client.get(
            "/api/v1/oauth/google/callback",
            params={"code": "auth-code", "state": connect.json()["state"]},
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "token_exchange_failed"
        assert len(test_app.state.accounts) == 0

    async def test_icloud_callback_keeps_state(
        self, test_app: FastAPI, client: AsyncClient, user: AuthUser
    ):
        state = test_app.state.oauth_states.generate_state(user.id, OAuthProvider.ICLOUD)

        response = await client.get(
            "/api/v1/oauth/icloud/callback", params={"code": "abc", "state": state}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "oauth_provider_not_supported"
        assert len(test_app.state.oauth_states) == 1

    async def test_missing_encryption_secret(
        self, test_app: FastAPI, client: AsyncClient, fake_provider: OAuthClient, user: AuthUser
    ):
        state = test_app.state.oauth_states.generate_state(user.id, OAuthProvider.GOOGLE)

        with patch.object(test_app.state.accounts.codec, "_secret", None):
            response = await client.get(
                "/api/v1/oauth/google/callback", params={"code": "auth-code", "state": state}
            )

        assert response.status_code == 500
        assert response.json()["detail"] == "Server configuration error"


@pytest.mark.anyio
class TestAccounts:
    """Test suite for connected account listing and disconnect"""

    async def _connect(self, test_app: FastAPI, client: AsyncClient, user_id: str, provider: str):
        state = test_app.state.oauth_states.generate_state(user_id, OAuthProvider(provider))
        response = await client.get(
            f"/api/v1/oauth/{provider}/callback", params={"code": "auth-code", "state": state}
        )
        assert response.status_code == 200

    async def test_list_empty(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/oauth/accounts", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == []

    async def test_list_only_own_accounts(
        self,
        test_app: FastAPI,
        client: AsyncClient,
        fake_provider: OAuthClient,
        user: AuthUser,
        other_user: AuthUser,
        auth_headers,
    ):
        await self._connect(test_app, client, user.id, "google")
        await self._connect(test_app, client, other_user.id, "github")

        response = await client.get("/api/v1/oauth/accounts", headers=auth_headers)

        assert response.status_code == 200
        assert [account["provider"] for account in response.json()] == ["google"]
        assert response.headers["X-RateLimit-Limit"] == "100"

    async def test_disconnect(
        self,
        test_app: FastAPI,
        client: AsyncClient,
        fake_provider: OAuthClient,
        user: AuthUser,
        auth_headers,
    ):
        await self._connect(test_app, client, user.id, "google")

        response = await client.delete("/api/v1/oauth/google", headers=auth_headers)

        assert response.status_code == 204
        assert test_app.state.accounts.get_access_token(user.id, OAuthProvider.GOOGLE) is None

    async def test_disconnect_not_connected(self, client: AsyncClient, auth_headers):
        response = await client.delete("/api/v1/oauth/notion", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "account_not_connected"
