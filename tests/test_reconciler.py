"""Tests for orphan reconciliation."""

import pytest

from statecraft import RunFailed, Scope
from statecraft.engine import OrphanReconciler
from statecraft.state import ResourceRecord, ResourceStatus, StateStore


async def _seed(backend, fqn, *, deps=(), output=True, type="test::thing"):
    prefix, _, key = fqn.rpartition("/")
    record = ResourceRecord(
        fqn=fqn,
        type=type,
        status=ResourceStatus.created if output else ResourceStatus.creating,
        props={},
        output={"id": key} if output else None,
        dependencies=list(deps),
        scope_path=prefix.split("/"),
    )
    await StateStore(backend).set(prefix, key, record)


class TestOrphanReconciler:
    """Deleting resources no longer declared."""

    @pytest.mark.asyncio
    async def test_orphans_deleted_dependents_first(self, backend, make_provider, journal):
        provider = make_provider()
        await _seed(backend, "app/dev/net")
        await _seed(backend, "app/dev/db", deps=["app/dev/net"])
        await _seed(backend, "app/dev/api", deps=["app/dev/db"])
        await _seed(backend, "app/dev/keep")

        async with Scope("app", state_store=backend) as app:
            app.declare(provider, "keep", {})

        deletes = [fqn for action, fqn in journal if action == "delete"]
        assert deletes == ["app/dev/api", "app/dev/db", "app/dev/net"]
        assert app.result.reconcile.deleted == deletes
        assert await StateStore(backend).list("app/dev") == ["keep"]

    @pytest.mark.asyncio
    async def test_orphans_in_nested_scopes(self, backend, make_provider, journal):
        provider = make_provider()
        await _seed(backend, "app/dev/payments/queue")

        async with Scope("app", state_store=backend) as app:
            app.declare(provider, "db")

        assert ("delete", "app/dev/payments/queue") in journal
        assert await StateStore(backend).list("app/dev") == ["db"]

    @pytest.mark.asyncio
    async def test_other_stages_untouched(self, backend, make_provider, journal):
        await _seed(backend, "app/prod/db")
        await _seed(backend, "app/dev2/db")

        async with Scope("app", state_store=backend, providers=[make_provider()]):
            pass

        assert journal == []
        assert await StateStore(backend).count("app/prod") == 1

    @pytest.mark.asyncio
    async def test_failed_delete_reports_and_blocks(self, backend, make_provider, journal):
        provider = make_provider()
        provider.fail_delete.add("api")
        await _seed(backend, "app/dev/db")
        await _seed(backend, "app/dev/api", deps=["app/dev/db"])
        await _seed(backend, "app/dev/cache")

        with pytest.raises(RunFailed) as exc_info:
            async with Scope("app", state_store=backend, providers=[provider]):
                pass

        report = exc_info.value.result.reconcile
        assert set(report.failed) == {"app/dev/api"}
        assert report.blocked == ["app/dev/db"]
        assert report.deleted == ["app/dev/cache"]
        assert not report.success
        assert ("delete", "app/dev/db") not in journal

    @pytest.mark.asyncio
    async def test_missing_provider_is_reported(self, backend):
        await _seed(backend, "app/dev/db", type="test::gone")

        with pytest.raises(RunFailed) as exc_info:
            async with Scope("app", state_store=backend):
                pass

        assert "test::gone" in exc_info.value.errors["app/dev/db"]

    @pytest.mark.asyncio
    async def test_unfinished_records_removed_without_provider(self, backend, journal):
        await _seed(backend, "app/dev/half", output=False, type="test::unknown")

        async with Scope("app", state_store=backend) as app:
            pass

        assert journal == []
        assert app.result.reconcile.deleted == ["app/dev/half"]
        assert await StateStore(backend).count("app/dev") == 0

    @pytest.mark.asyncio
    async def test_skipped_when_run_has_failures(self, backend, make_provider, journal):
        provider = make_provider()
        provider.fail_create.add("db")
        await _seed(backend, "app/dev/old")

        with pytest.raises(RunFailed):
            async with Scope("app", state_store=backend) as app:
                app.declare(provider, "db")

        assert ("delete", "app/dev/old") not in journal
        assert app.result.reconcile is None

    @pytest.mark.asyncio
    async def test_find_orphans_directly(self, backend, make_provider):
        await _seed(backend, "app/dev/a")
        await _seed(backend, "app/dev/b")
        app = Scope("app", state_store=backend)
        app.declare(make_provider(), "a")

        orphans = await OrphanReconciler(app.run).find_orphans()

        assert list(orphans) == ["app/dev/b"]
