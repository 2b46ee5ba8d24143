from __future__ import annotations

from pathlib import Path

from statecraft.config import Settings, get_settings
from statecraft.core.errors import ConfigurationError
from statecraft.serde import Serde
from statecraft.state.base import StateBackend
from statecraft.state.filesystem import FileSystemStateBackend
from statecraft.state.memory import MemoryStateBackend
from statecraft.state.remote import RemoteStateBackend
from statecraft.state.sqlite import SqliteStateBackend
from statecraft.state.store import StateStore


def create_backend(kind: str, settings: Settings) -> StateBackend:
    if kind == "filesystem":
        return FileSystemStateBackend(Path(settings.state_dir) / "state")

    if kind == "sqlite":
        return SqliteStateBackend(settings.database_url, echo=settings.debug)

    if kind == "memory":
        return MemoryStateBackend()

    if kind == "remote":
        if not settings.remote_url or not settings.remote_token:
            raise ConfigurationError(
                "Remote state store requires remote_url and remote_token",
                {"state_store": kind},
            )
        return RemoteStateBackend(
            settings.remote_url,
            settings.remote_token,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
            backoff_factor=settings.http_retry_backoff_factor,
        )

    raise ConfigurationError(f"Unsupported state store backend: {kind}", {"state_store": kind})


def create_state_store(
    settings: Settings | None = None,
    *,
    passphrase: str | None = None,
) -> StateStore:
    """Build the configured state store with secrets bound to ``passphrase``."""

    cfg = settings or get_settings()
    backend = create_backend(cfg.state_store, cfg)
    return StateStore(backend, Serde(passphrase if passphrase is not None else cfg.password))
