"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache) — single instance per process
    - database_url is optional: without it the server still serves non-persistent routes
    - api_spec_location defaults to the contract shipped inside the package

Design Decisions:
    - Settings feed ServerConfiguration in the composition root; the server
      itself never reads the environment
"""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SPEC_LOCATION = str(Path(__file__).parent / "contracts" / "service.yaml")


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    request_timeout_ms: int = 30_000
    max_body_bytes: int = 3 * 1024 * 1024
    base_path: str = "/"

    # Contract
    api_spec_location: str = DEFAULT_SPEC_LOCATION

    # Database
    database_url: str | None = None
    database_create_schema: bool = False

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str | None) -> str | None:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v or None

    # API
    cors_origins: list[str] = []
    cors_allow_credentials: bool = False

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
