"""
Application settings using Pydantic.

Provides environment-based configuration loading with STATECRAFT_ prefix.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Run
    stage: str = "dev"
    phase: Literal["up", "destroy", "read"] = "up"
    force: bool = False
    adopt: bool = False
    max_concurrency: int | None = None
    destroy_strategy: Literal["sequential", "parallel"] = "sequential"

    # Encryption passphrase for secrets in state
    password: str | None = None

    # State store
    state_store: Literal["filesystem", "sqlite", "remote", "memory"] = "filesystem"
    state_dir: str = ".statecraft"
    database_url: str = "sqlite+aiosqlite:///.statecraft/state.db"

    # Remote state store
    remote_url: str | None = None
    remote_token: str | None = None

    # HTTP client settings
    http_timeout: int = 30
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 0.5

    # State server
    server_token: str | None = None
    server_backend: Literal["filesystem", "sqlite", "memory"] = "sqlite"

    # Debug
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "STATECRAFT_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
