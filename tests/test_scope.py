"""Tests for scope naming, inheritance and declaration rules."""

import pytest

from statecraft import Phase, Scope, Secret
from statecraft.core.errors import ConfigurationError, ValidationError
from statecraft.serde import Serde
from statecraft.state import StateStore


class TestNaming:
    """Scope chains and fully qualified names."""

    def test_root_chain_includes_stage(self, backend):
        app = Scope("shop", stage="prod", state_store=backend)

        assert app.chain == ["shop", "prod"]
        assert app.prefix == "shop/prod"
        assert app.fqn("db") == "shop/prod/db"

    def test_default_stage(self, backend):
        assert Scope("shop", state_store=backend).stage == "dev"

    def test_child_chain(self, backend, make_provider):
        app = Scope("shop", state_store=backend)
        child = app.scope("payments")

        handle = child.declare(make_provider(), "queue")

        assert child.chain == ["shop", "dev", "payments"]
        assert handle.fqn == "shop/dev/payments/queue"
        assert child.parent is app
        assert app.children == {"payments": child}

    @pytest.mark.parametrize("name", ["", "a/b", "a:b"])
    def test_invalid_names(self, backend, name):
        with pytest.raises(ValidationError):
            Scope(name, state_store=backend)

    def test_root_requires_state_store(self):
        with pytest.raises(ConfigurationError):
            Scope("shop")


class TestInheritance:
    """Options flowing from parent to child."""

    def test_child_inherits_and_overrides(self, backend):
        app = Scope(
            "shop",
            state_store=backend,
            phase="read",
            credentials={"region": "eu", "token": "a"},
            force=True,
        )
        child = app.scope("payments", credentials={"token": "b"}, adopt=True)

        assert child.phase is Phase.read
        assert child.stage == "dev"
        assert child.force is True
        assert child.adopt is True
        assert app.adopt is False
        assert child.credentials == {"region": "eu", "token": "b"}
        assert child.run is app.run
        assert child.state is app.state

    def test_root_only_options_rejected_on_child(self, backend):
        app = Scope("shop", state_store=backend)

        with pytest.raises(ValidationError):
            app.scope("payments", stage="prod")

    def test_duplicate_child_name(self, backend):
        app = Scope("shop", state_store=backend)
        app.scope("payments")

        with pytest.raises(ValidationError):
            app.scope("payments")


class TestDeclare:
    """Declaration rules."""

    def test_duplicate_id_rejected(self, backend, make_provider):
        app = Scope("shop", state_store=backend)
        app.declare(make_provider(), "db")

        with pytest.raises(ValidationError):
            app.declare(make_provider(), "db")

    @pytest.mark.parametrize("id", ["", "a/b", "x:y"])
    def test_invalid_ids(self, backend, make_provider, id):
        app = Scope("shop", state_store=backend)

        with pytest.raises(ValidationError):
            app.declare(make_provider(), id)

    def test_same_id_in_different_scopes(self, backend, make_provider):
        provider = make_provider()
        app = Scope("shop", state_store=backend)

        first = app.declare(provider, "db")
        second = app.scope("payments").declare(provider, "db")

        assert first.fqn != second.fqn

    def test_dependencies_from_refs_and_depends_on(self, backend, make_provider):
        provider = make_provider()
        app = Scope("shop", state_store=backend)
        net = app.declare(provider, "net")
        db = app.declare(provider, "db", depends_on=[net])
        api = app.declare(provider, "api", {"urls": [db["url"], db.ref("url")]}, depends_on=[net])

        assert db.dependencies == ["shop/dev/net"]
        assert api.dependencies == ["shop/dev/net", "shop/dev/db"]
        assert app.run.graph.dependencies_of("shop/dev/api") == api.dependencies

    def test_reference_from_other_run_rejected(self, backend, make_provider):
        provider = make_provider()
        other = Scope("other", state_store=backend).declare(provider, "db")
        app = Scope("shop", state_store=backend)

        with pytest.raises(ValidationError):
            app.declare(provider, "api", {"url": other["url"]})

    def test_conflicting_provider_types_rejected(self, backend, make_provider):
        app = Scope("shop", state_store=backend)
        app.declare(make_provider("test::db"), "a")

        with pytest.raises(ValidationError):
            app.declare(make_provider("test::db"), "b")

    @pytest.mark.asyncio
    async def test_declare_after_close_rejected(self, backend, make_provider):
        provider = make_provider()
        async with Scope("shop", state_store=backend) as app:
            pass

        with pytest.raises(ValidationError):
            app.declare(provider, "late")


class TestNestedExecution:
    """Child scopes execute their resources on exit."""

    @pytest.mark.asyncio
    async def test_child_runs_on_exit(self, backend, make_provider, journal):
        provider = make_provider()

        async with Scope("shop", state_store=backend) as app:
            async with app.scope("payments") as payments:
                payments.declare(provider, "queue")
            assert journal == [("create", "shop/dev/payments/queue")]
            app.declare(provider, "api")

        assert journal[-1] == ("create", "shop/dev/api")
        records = await StateStore(backend).all("shop/dev")
        assert records["payments:queue"].scope_path == ["shop", "dev", "payments"]

    @pytest.mark.asyncio
    async def test_child_resource_depends_on_parent_resource(self, backend, make_provider, journal):
        provider = make_provider()

        async with Scope("shop", state_store=backend) as app:
            db = app.declare(provider, "db")
            async with app.scope("payments") as payments:
                payments.declare(provider, "worker", {"db": db["url"]})

        assert journal == [("create", "shop/dev/db"), ("create", "shop/dev/payments/worker")]

    @pytest.mark.asyncio
    async def test_password_encrypts_secrets(self, backend, make_provider):
        async with Scope("shop", state_store=backend, password="pw") as app:
            app.declare(make_provider(), "db", {"password": Secret("hunter2")})

        raw = await backend.get("shop/dev", "db")
        assert "hunter2" not in str(raw)
        record = await StateStore(backend, Serde("pw")).get("shop/dev", "db")
        assert record.props == {"password": Secret("hunter2")}
