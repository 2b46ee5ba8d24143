"""Tests for settings, backend selection and open_scope."""

import pytest

from statecraft import Phase, open_scope
from statecraft.config import Settings, get_settings
from statecraft.core.errors import ConfigurationError
from statecraft.state import (
    FileSystemStateBackend,
    MemoryStateBackend,
    RemoteStateBackend,
    SqliteStateBackend,
    create_backend,
    create_state_store,
)


class TestSettings:
    """Environment-driven settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.stage == "dev"
        assert settings.phase == "up"
        assert settings.state_store == "filesystem"
        assert settings.password is None
        assert settings.destroy_strategy == "sequential"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("STATECRAFT_STAGE", "prod")
        monkeypatch.setenv("STATECRAFT_PHASE", "destroy")
        monkeypatch.setenv("STATECRAFT_MAX_CONCURRENCY", "4")
        monkeypatch.setenv("STATECRAFT_DESTROY_STRATEGY", "parallel")

        settings = Settings()

        assert settings.stage == "prod"
        assert settings.phase == "destroy"
        assert settings.max_concurrency == 4
        assert settings.destroy_strategy == "parallel"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()

        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestBackendSelection:
    """create_backend / create_state_store."""

    def test_filesystem(self, tmp_path):
        backend = create_backend("filesystem", Settings(state_dir=str(tmp_path)))

        assert isinstance(backend, FileSystemStateBackend)
        assert backend.root == tmp_path / "state"

    def test_sqlite(self, tmp_path):
        settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path}/s.db")

        assert isinstance(create_backend("sqlite", settings), SqliteStateBackend)

    def test_memory(self):
        assert isinstance(create_backend("memory", Settings()), MemoryStateBackend)

    def test_remote_requires_url_and_token(self):
        with pytest.raises(ConfigurationError):
            create_backend("remote", Settings(remote_url="https://state.example.com"))

    def test_remote(self):
        settings = Settings(remote_url="https://state.example.com", remote_token="t")

        assert isinstance(create_backend("remote", settings), RemoteStateBackend)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_backend("etcd", Settings())

    def test_state_store_binds_password(self):
        store = create_state_store(Settings(state_store="memory", password="pw"))

        assert isinstance(store.backend, MemoryStateBackend)
        assert store.serde.decode(store.serde.encode("plain")) == "plain"


class TestOpenScope:
    """Root scopes built from settings."""

    def test_settings_applied(self):
        settings = Settings(
            state_store="memory", stage="qa", phase="read", force=True, destroy_strategy="parallel"
        )

        app = open_scope("shop", settings)

        assert app.prefix == "shop/qa"
        assert app.phase is Phase.read
        assert app.force is True
        assert app.destroy_strategy == "parallel"
        assert isinstance(app.state.backend, MemoryStateBackend)

    def test_overrides_win(self):
        backend = MemoryStateBackend()
        settings = Settings(state_store="memory", stage="qa")

        app = open_scope("shop", settings, stage="prod", state_store=backend)

        assert app.prefix == "shop/prod"
        assert app.state.backend is backend

    @pytest.mark.asyncio
    async def test_full_run(self, make_provider, journal):
        provider = make_provider()
        settings = Settings(state_store="memory")

        async with open_scope("shop", settings) as app:
            app.declare(provider, "db")

        assert journal == [("create", "shop/dev/db")]
        assert app.result.success
