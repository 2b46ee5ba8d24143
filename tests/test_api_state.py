"""Tests for the state server protocol."""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from statecraft.api.actors import ActorRegistry, NamespaceActor, namespace_of
from statecraft.api.main import create_app
from statecraft.core.errors import ConfigurationError
from statecraft.config import Settings
from statecraft.state.memory import MemoryStateBackend

TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


class ExplodingBackend(MemoryStateBackend):
    async def list(self, prefix):
        raise RuntimeError("disk on fire")


def _client(backend=None) -> AsyncClient:
    app = create_app(Settings(), backend=backend or MemoryStateBackend(), token=TOKEN)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_needs_no_auth(self):
        async with _client() as client:
            response = await client.get("/status")

        assert response.status_code == 200
        assert response.text == "OK"


class TestAuth:
    """Bearer token checks."""

    @pytest.mark.asyncio
    async def test_missing_token(self):
        async with _client() as client:
            response = await client.post("/", json={"method": "list", "prefix": "app/dev"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_wrong_token(self):
        async with _client() as client:
            response = await client.post(
                "/",
                json={"method": "list", "prefix": "app/dev"},
                headers={"Authorization": "Bearer nope"},
            )

        assert response.status_code == 401

    def test_server_requires_token(self):
        with pytest.raises(ConfigurationError):
            create_app(Settings(server_token=None), backend=MemoryStateBackend())


class TestRequestValidation:
    """Malformed requests."""

    @pytest.mark.asyncio
    async def test_non_post_is_rejected(self):
        async with _client() as client:
            response = await client.get("/", headers=AUTH)

        assert response.status_code == 405
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with _client() as client:
            response = await client.post("/", content=b"{not json", headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"

    @pytest.mark.asyncio
    async def test_missing_prefix(self):
        async with _client() as client:
            response = await client.post("/", json={"method": "list"}, headers=AUTH)

        assert response.status_code == 400
        assert "prefix" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_missing_key_for_get(self):
        async with _client() as client:
            response = await client.post(
                "/", json={"method": "get", "prefix": "app/dev"}, headers=AUTH
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_value_for_set(self):
        async with _client() as client:
            response = await client.post(
                "/", json={"method": "set", "prefix": "app/dev", "key": "db"}, headers=AUTH
            )

        assert response.status_code == 400
        assert "value" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_unknown_method(self):
        async with _client() as client:
            response = await client.post(
                "/", json={"method": "truncate", "prefix": "app/dev"}, headers=AUTH
            )

        assert response.status_code == 404
        assert response.json() == {"error": "Unknown method: truncate"}

    @pytest.mark.asyncio
    async def test_unknown_method_wins_over_missing_fields(self):
        async with _client() as client:
            response = await client.post("/", json={"method": "truncate"}, headers=AUTH)

        assert response.status_code == 404
        assert response.json() == {"error": "Unknown method: truncate"}

    @pytest.mark.asyncio
    async def test_unexpected_failure_echoes_request(self):
        payload = {"method": "list", "prefix": "app/dev"}

        async with _client(ExplodingBackend()) as client:
            response = await client.post("/", json=payload, headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"error": "disk on fire", "request": payload}


class TestMethods:
    """Happy-path protocol methods."""

    @pytest.mark.asyncio
    async def test_set_get_list_count_all_delete(self):
        document = {"fqn": "app/dev/db", "status": "created"}

        async with _client() as client:
            response = await client.post(
                "/",
                json={"method": "set", "prefix": "app/dev", "key": "db", "value": document},
                headers=AUTH,
            )
            assert response.status_code == 200
            assert response.text == "OK"

            response = await client.post(
                "/", json={"method": "get", "prefix": "app/dev", "key": "db"}, headers=AUTH
            )
            assert response.json() == document

            response = await client.post(
                "/",
                json={"method": "getBatch", "prefix": "app/dev", "keys": ["db", "x"]},
                headers=AUTH,
            )
            assert response.json() == {"db": document}

            response = await client.post(
                "/", json={"method": "list", "prefix": "app/dev"}, headers=AUTH
            )
            assert response.json() == ["db"]

            response = await client.post(
                "/", json={"method": "count", "prefix": "app/dev"}, headers=AUTH
            )
            assert response.json() == 1

            response = await client.post(
                "/", json={"method": "all", "prefix": "app/dev"}, headers=AUTH
            )
            assert response.json() == {"db": document}

            response = await client.post(
                "/", json={"method": "delete", "prefix": "app/dev", "key": "db"}, headers=AUTH
            )
            assert response.text == "OK"

            response = await client.post(
                "/", json={"method": "get", "prefix": "app/dev", "key": "db"}, headers=AUTH
            )
            assert response.json() is None


class TestNamespaceActors:
    """Write serialization per namespace."""

    def test_namespace_is_first_two_segments(self):
        assert namespace_of("app/dev/child/grandchild") == "app/dev"
        assert namespace_of("app") == "app"

    def test_registry_reuses_actor_per_namespace(self):
        registry = ActorRegistry()

        assert registry.get("app/dev") is registry.get("app/dev/child")
        assert registry.get("app/prod") is not registry.get("app/dev")
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_operations_do_not_interleave(self):
        actor = NamespaceActor("app/dev")
        events: list[str] = []

        def operation(name):
            async def run():
                events.append(f"{name}:start")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                events.append(f"{name}:end")
                return name

            return run

        results = await asyncio.gather(actor.run(operation("a")), actor.run(operation("b")))

        assert results == ["a", "b"]
        assert events == ["a:start", "a:end", "b:start", "b:end"]
