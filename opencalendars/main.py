from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from opencalendars.api.routes import api_router
from opencalendars.core.config import Environment, settings
from opencalendars.core.encryption import get_token_codec
from opencalendars.core.logger import configure_uvicorn_logging, setup_logger, shutdown_logger
from opencalendars.middleware.logging import LoggingMiddleware
from opencalendars.middleware.rate_limit import RateLimitHeaderMiddleware
from opencalendars.services.oauth_client import OAuthClient
from opencalendars.services.stores import ConnectedAccountStore, OAuthStateStore, RateLimiter


def init_stores(app: FastAPI) -> None:
    """Build the process-local stores and attach them to the application state"""
    app.state.oauth_states = OAuthStateStore(
        ttl_seconds=settings.oauth_state_ttl_seconds,
        sweep_interval=settings.oauth_state_sweep_seconds,
    )
    app.state.rate_limiter = RateLimiter(sweep_interval=settings.rate_limit_sweep_seconds)
    app.state.accounts = ConnectedAccountStore(codec=get_token_codec())
    app.state.oauth_client = OAuthClient()


def _check_configuration():
    """Warn about secrets the auth endpoints need at request time"""

    if not settings.jwt_secret:
        logger.warning("JWT_SECRET is not set. Desktop token endpoints will fail.")

    if not settings.token_encryption_secret:
        logger.warning(
            "ENCRYPTION_KEY and SESSION_COOKIE_SECRET are not set. "
            "Connecting provider accounts will fail."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""

    setup_logger()
    configure_uvicorn_logging()

    logger.info("Initializing resources...")
    _check_configuration()
    init_stores(app)
    app.state.oauth_states.start()
    app.state.rate_limiter.start()
    logger.success("Resources initialized.")

    yield  # Application runs here

    logger.info("Cleaning up resources...")
    await app.state.oauth_states.stop()
    await app.state.rate_limiter.stop()
    logger.success("Resources cleaned up.")
    shutdown_logger()


ALLOWED_ENVIRONMENTS = {Environment.LOCAL, Environment.DEV, Environment.STG}

app = FastAPI(
    title=settings.app_title,
    version=settings.app_version,
    description=settings.app_description,
    openapi_url=("/openapi.json" if settings.current_environment in ALLOWED_ENVIRONMENTS else None),
    docs_url="/docs" if settings.current_environment in ALLOWED_ENVIRONMENTS else None,
    redoc_url="/redoc" if settings.current_environment in ALLOWED_ENVIRONMENTS else None,
    lifespan=lifespan,
    generate_unique_id_function=lambda route: f"{route.tags[0]}-{route.name}",
)

# Set CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set rate limit header middleware
app.add_middleware(RateLimitHeaderMiddleware)

# Set logging middleware
app.add_middleware(LoggingMiddleware)

# Include API router
app.include_router(api_router)
