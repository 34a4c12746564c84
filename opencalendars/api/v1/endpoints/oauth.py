from typing import Annotated

from fastapi import APIRouter, Depends, status
from loguru import logger

from opencalendars.api.v1.deps.auth import CurrentUser
from opencalendars.api.v1.deps.rate_limit import (
    rate_limit_auth_user,
    rate_limit_mutations,
    rate_limit_reads,
    rate_limit_sync,
)
from opencalendars.api.v1.deps.stores import (
    get_account_store,
    get_oauth_client,
    get_state_store,
)
from opencalendars.core import responses
from opencalendars.core.constants import OAuthProvider
from opencalendars.core.exceptions import http_exceptions
from opencalendars.core.exceptions.configuration import ConfigurationError
from opencalendars.core.exceptions.oauth import TokenExchangeError
from opencalendars.schemas import ConnectedAccountResponse, OAuthConnectResponse
from opencalendars.services.oauth_client import OAuthClient
from opencalendars.services.stores import ConnectedAccountStore, OAuthStateStore

router = APIRouter()

StateStore = Annotated[OAuthStateStore, Depends(get_state_store)]
AccountStore = Annotated[ConnectedAccountStore, Depends(get_account_store)]
Client = Annotated[OAuthClient, Depends(get_oauth_client)]


@router.get(
    "/accounts",
    response_model=list[ConnectedAccountResponse],
    dependencies=[Depends(rate_limit_reads)],
    summary="List connected accounts",
)
async def list_connected_accounts(current_user: CurrentUser, accounts: AccountStore):
    return accounts.list_for_user(current_user.id)


@router.get(
    "/{provider}/connect",
    response_model=OAuthConnectResponse,
    dependencies=[Depends(rate_limit_auth_user)],
    summary="Start provider connection",
    description="Issue a single-use state token and the provider consent URL.",
)
async def connect_provider(
    provider: OAuthProvider,
    current_user: CurrentUser,
    states: StateStore,
    oauth_client: Client,
):
    state = states.generate_state(current_user.id, provider)

    logger.info(f"OAuth connection started for {provider} by user {current_user.id}")

    return OAuthConnectResponse(
        provider=provider,
        state=state,
        authorization_url=oauth_client.authorization_url(provider, state),
    )


@router.get(
    "/{provider}/callback",
    response_model=ConnectedAccountResponse,
    dependencies=[Depends(rate_limit_sync)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": responses.BadRequestResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": responses.BadGatewayResponse},
    },
    summary="Provider OAuth callback",
    description="Validate the state, exchange the code and store the encrypted tokens.",
)
async def oauth_callback(
    provider: OAuthProvider,
    states: StateStore,
    accounts: AccountStore,
    oauth_client: Client,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """
    Complete a provider connection.

    The user is identified by the state token alone, since provider redirects
    carry no bearer token.
    """
    if error:
        logger.warning(f"{provider} OAuth returned error: {error}")
        raise http_exceptions.BadRequestException(detail=error)

    if not code or not state:
        raise http_exceptions.BadRequestException(detail="missing_parameters")

    # Checked before validation so the state is not consumed
    if not oauth_client.supports_code_exchange(provider):
        raise http_exceptions.BadRequestException(detail="oauth_provider_not_supported")

    user_id = states.validate_state(state, provider)
    if user_id is None:
        raise http_exceptions.BadRequestException(detail="oauth_state_invalid")

    try:
        tokens = await oauth_client.exchange_code(provider, code)
        return accounts.save(user_id, provider, tokens)
    except TokenExchangeError as err:
        raise http_exceptions.BadGatewayException(detail=err.public_message)
    except ConfigurationError as err:
        logger.error(f"Cannot complete {provider} connection: {err}")
        raise http_exceptions.InternalServerErrorException(detail=err.public_message)


@router.delete(
    "/{provider}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit_mutations)],
    responses={
        status.HTTP_404_NOT_FOUND: {"model": responses.NotFoundResponse},
    },
    summary="Disconnect provider",
)
async def disconnect_provider(
    provider: OAuthProvider,
    current_user: CurrentUser,
    accounts: AccountStore,
):
    if not accounts.disconnect(current_user.id, provider):
        raise http_exceptions.NotFoundException(detail="account_not_connected")
