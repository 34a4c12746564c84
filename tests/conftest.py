import os

# Secrets must be in place before settings are first imported
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-0123456789abcdef")
os.environ.setdefault("CURRENT_ENVIRONMENT", "local")

from typing import AsyncGenerator, Generator  # noqa: E402

import pytest  # noqa: E402
from faker import Faker  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from opencalendars.core.auth import generate_access_token, generate_refresh_token  # noqa: E402
from opencalendars.core.encryption import TokenCodec  # noqa: E402
from opencalendars.main import app, init_stores  # noqa: E402
from opencalendars.schemas import AuthUser  # noqa: E402

# Aligned to a 60 second boundary so window tests start at the top of a window
CLOCK_START = 1_700_000_040.0


class FakeClock:
    """Manually advanced clock for the in-memory stores"""

    def __init__(self, start: float = CLOCK_START):
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def faker() -> Faker:
    """Create a Faker instance for generating test data."""
    return Faker()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec("unit-test-secret")


@pytest.fixture
def test_app() -> Generator[FastAPI, None, None]:
    """The application with fresh stores, bypassing the lifespan and its sweep tasks."""
    init_stores(app)

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user(faker: Faker) -> AuthUser:
    return AuthUser(id=faker.uuid4(), email=faker.safe_email())


@pytest.fixture
def other_user(faker: Faker) -> AuthUser:
    return AuthUser(id=faker.uuid4(), email=faker.safe_email())


@pytest.fixture
def access_token(user: AuthUser) -> str:
    return generate_access_token(user.id, user.email)


@pytest.fixture
def refresh_token(user: AuthUser) -> str:
    return generate_refresh_token(user.id, user.email)


@pytest.fixture
def auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}
