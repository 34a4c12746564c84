import logging
import os
import tomllib
from enum import StrEnum
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_DIR = Path(__file__).parent.parent.parent
PROJECT_TOML_PATH = PROJECT_DIR / "pyproject.toml"

with open(PROJECT_TOML_PATH, "rb") as f:
    PYPROJECT_CONTENT = tomllib.load(f)["project"]


class Environment(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    STG = "stg"
    PRD = "prd"


def convert_app_name(s: str) -> str:
    return " ".join(word.capitalize() for word in s.split("-"))


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=False,
        extra="ignore",
    )

    # App variables
    app_name: str = PYPROJECT_CONTENT["name"]
    app_title: str = os.getenv("APP_TITLE", convert_app_name(app_name))
    app_version: str = PYPROJECT_CONTENT["version"]
    app_description: str = PYPROJECT_CONTENT["description"]

    backend_host: str = "127.0.0.1"
    backend_port: int = 8000

    cors_origins: str = "http://localhost:3000"

    # Reverse proxies in front of the app, each appending one X-Forwarded-For hop.
    # 0 ignores forwarding headers and uses the socket address.
    trusted_proxy_hops: int = 1

    # Number of workers for uvicorn. The in-memory stores are per process,
    # so anything above 1 splits OAuth state and rate limits between workers.
    workers_count: int = 1

    # Enable uvicorn reloading
    reload_uvicorn: bool = False

    # Current working environment
    current_environment: Environment = Environment.LOCAL
    log_level: int = logging.INFO
    debug: bool = False

    # Token encryption at rest (ENCRYPTION_KEY, falling back to SESSION_COOKIE_SECRET)
    encryption_key: str | None = None
    session_cookie_secret: str | None = None

    # Desktop JWT settings
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_expiry: int = 60 * 60  # Access token lifetime in seconds
    jwt_refresh_expiry: int = 90 * 24 * 60 * 60  # Refresh token lifetime in seconds

    # OAuth state store
    oauth_state_ttl_seconds: int = 5 * 60
    oauth_state_sweep_seconds: int = 5 * 60

    # Rate limiting (requests per window)
    rate_limit_window: int = 60  # Window in seconds shared by all presets
    rate_limit_auth: int = 5  # Authentication and OAuth endpoints
    rate_limit_mutations: int = 30  # POST, PUT, DELETE
    rate_limit_reads: int = 100  # GET
    rate_limit_sync: int = 10  # Calls that fan out to external APIs
    rate_limit_sweep_seconds: int = 10 * 60

    # OAuth providers
    oauth_http_timeout: float = 10.0
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/api/v1/oauth/google/callback"
    github_client_id: str = ""
    github_client_secret: str = ""
    github_redirect_uri: str = "http://localhost:8000/api/v1/oauth/github/callback"
    notion_client_id: str = ""
    notion_client_secret: str = ""
    notion_redirect_uri: str = "http://localhost:8000/api/v1/oauth/notion/callback"

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS origins from a comma-separated string.
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @computed_field
    @property
    def token_encryption_secret(self) -> str | None:
        """
        Secret used to derive the token encryption key.
        """
        return self.encryption_key or self.session_cookie_secret or None


settings = Settings()  # type: ignore
