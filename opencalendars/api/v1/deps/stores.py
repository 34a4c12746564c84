from fastapi import Request

from opencalendars.services.oauth_client import OAuthClient
from opencalendars.services.stores import ConnectedAccountStore, OAuthStateStore, RateLimiter


def get_state_store(request: Request) -> OAuthStateStore:
    return request.app.state.oauth_states


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_account_store(request: Request) -> ConnectedAccountStore:
    return request.app.state.accounts


def get_oauth_client(request: Request) -> OAuthClient:
    return request.app.state.oauth_client
