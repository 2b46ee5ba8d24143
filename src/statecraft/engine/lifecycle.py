"""Drives declared resources through their persisted lifecycle.

Each resource runs as its own asyncio task: it waits for its dependencies,
compares its props with the persisted record, calls the provider and
persists every transition before exposing its output. Objects superseded
by a replacement are deleted once the whole run has been applied. Deletion
(destroy phase and orphan reconciliation) walks the dependency graph in
teardown order so nothing is removed while a dependent still exists.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from statecraft.core.errors import (
    DependencyFailed,
    ProviderError,
    ResourceExists,
    ResourceNotFound,
    StatecraftError,
    StoreError,
    StoreIOError,
)
from statecraft.engine.context import DestroyStrategy, RunContext
from statecraft.engine.provider import ResourceContext, supports_read
from statecraft.engine.resource import Resource, resolve_refs
from statecraft.engine.results import Action, ReconcileReport
from statecraft.graph import teardown_order
from statecraft.state.models import ReplacedObject, ResourceRecord, ResourceStatus


class LifecycleEngine:
    """Applies, reads and deletes resources for one run."""

    def __init__(self, run: RunContext) -> None:
        self.run = run
        self.state = run.root.state
        self.log = run.log

    # -- up / read ---------------------------------------------------------

    async def execute(self, resources: Iterable[Resource]) -> None:
        """Run ``resources`` and any of their still-pending dependencies."""
        tasks = [self.start(resource) for resource in self._with_dependencies(resources)]
        if tasks:
            await asyncio.gather(*tasks)

    def _with_dependencies(self, resources: Iterable[Resource]) -> list[Resource]:
        selected: dict[str, Resource] = {}
        stack = list(resources)
        while stack:
            resource = stack.pop()
            if resource.fqn in selected:
                continue
            selected[resource.fqn] = resource
            for dep in resource.dependencies:
                if dep in self.run.resources and dep not in selected:
                    stack.append(self.run.resources[dep])
        return list(selected.values())

    def start(self, resource: Resource) -> asyncio.Task[None]:
        task = self.run.tasks.get(resource.fqn)
        if task is None:
            task = asyncio.create_task(self._run(resource), name=resource.fqn)
            self.run.tasks[resource.fqn] = task
        return task

    async def _run(self, resource: Resource) -> None:
        try:
            await self._wait_for_dependencies(resource)
            async with self.run.limit():
                if resource.scope.phase.value == "read":
                    await self._read(resource)
                else:
                    await self._apply(resource)
        except StatecraftError as exc:
            self._fail(resource, exc)
        except Exception as exc:
            self.log.exception("resource_unexpected_error", fqn=resource.fqn)
            self._fail(resource, StatecraftError(f"Unexpected error for {resource.fqn}: {exc}"))

    async def _wait_for_dependencies(self, resource: Resource) -> None:
        for dep in resource.dependencies:
            handle = self.run.resources[dep]
            self.start(handle)
            try:
                await handle.wait()
            except StatecraftError as exc:
                raise DependencyFailed(resource.fqn, dep) from exc

    def _fail(self, resource: Resource, error: StatecraftError) -> None:
        self.log.error(
            "resource_failed",
            fqn=resource.fqn,
            type=resource.type,
            error=error.message,
            error_type=type(error).__name__,
        )
        self.run.collector.record(resource.fqn, resource.type, Action.fail, error.message)
        resource.reject(error)

    async def _read(self, resource: Resource) -> None:
        record = await self.state.get(resource.scope.prefix, resource.id)
        if record is None:
            raise ResourceNotFound(
                f"Resource {resource.fqn} not found and running in 'read' phase",
                {"fqn": resource.fqn},
            )
        self._check_identity(record, resource.fqn)
        if record.output is None:
            raise ResourceNotFound(
                f"Resource {resource.fqn} never finished creating", {"fqn": resource.fqn}
            )
        resource.status = record.status
        self.run.collector.record(resource.fqn, resource.type, Action.read)
        resource.resolve(record.output)

    async def _apply(self, resource: Resource) -> None:
        scope = resource.scope
        props = resolve_refs(resource.props)
        prior = await self.state.get(scope.prefix, resource.id)
        if prior is not None:
            self._check_identity(prior, resource.fqn)

        if (
            prior is not None
            and prior.status.is_stable
            and not scope.force
            and self._unchanged(prior.props, props)
        ):
            await self._skip(resource, prior)
            return

        create = prior is None or prior.output is None
        prior_output = prior.output if prior is not None else None
        record = ResourceRecord(
            fqn=resource.fqn,
            type=resource.type,
            status=ResourceStatus.creating if create else ResourceStatus.updating,
            props=props,
            output=prior_output,
            dependencies=list(resource.dependencies),
            scope_path=list(scope.chain),
            replaced=list(prior.replaced) if prior is not None else [],
        )
        await self._persist(record, resource)

        ctx = self._context(
            resource.scope,
            record,
            prior_props=prior.props if prior is not None else None,
        )
        self.log.info(
            "resource_applying", fqn=resource.fqn, type=resource.type, create=create
        )
        try:
            if create:
                output = await self._create(resource, ctx, props)
            else:
                output = await resource.provider.update(ctx, props, prior_output)
        except Exception as exc:
            error = self._wrap(exc, resource.fqn, "create" if create else "update")
            await self._record_failure(record, error, resource)
            if error is exc:
                raise
            raise error from exc

        replaced = list(record.replaced)
        if ctx.replaced:
            if create:
                self.log.debug("resource_replace_ignored_on_create", fqn=resource.fqn)
            else:
                self.log.info("resource_replaced", fqn=resource.fqn, type=resource.type)
                replaced.append(ReplacedObject(props=prior.props, output=prior_output))

        final = record.model_copy(
            update={
                "status": ResourceStatus.created if create else ResourceStatus.updated,
                "output": output,
                "replaced": replaced,
            }
        )
        await self._persist(final, resource)
        if replaced:
            self.run.replacements.append(resource.fqn)
        self.run.collector.record(
            resource.fqn, resource.type, Action.create if create else Action.update
        )
        resource.resolve(output)

    async def _skip(self, resource: Resource, prior: ResourceRecord) -> None:
        """Leave an unchanged resource alone but keep its recorded edges current."""
        self.log.debug("resource_skipped", fqn=resource.fqn)
        if list(prior.dependencies) != list(resource.dependencies):
            refreshed = prior.model_copy(update={"dependencies": list(resource.dependencies)})
            await self.state.set(refreshed.prefix, refreshed.id, refreshed)
            self.log.info(
                "resource_dependencies_refreshed",
                fqn=resource.fqn,
                dependencies=refreshed.dependencies,
            )
        if prior.replaced:
            self.run.replacements.append(resource.fqn)
        resource.status = prior.status
        self.run.collector.record(resource.fqn, resource.type, Action.skip)
        resource.resolve(prior.output)

    async def _create(self, resource: Resource, ctx: ResourceContext, props: Any) -> Any:
        try:
            return await resource.provider.create(ctx, props)
        except ResourceExists:
            if not resource.adopt:
                raise
            if not supports_read(resource.provider):
                raise ProviderError(
                    f"Cannot adopt {resource.fqn}: provider '{resource.type}' cannot read",
                    fqn=resource.fqn,
                )
            live = await resource.provider.read(ctx)
            self.log.info("resource_adopted", fqn=resource.fqn, type=resource.type)
            ctx.output = live
            return await resource.provider.update(ctx, props, live)

    def _unchanged(self, old: Any, new: Any) -> bool:
        serde = self.state.serde
        return serde.encode(old, encrypt=False) == serde.encode(new, encrypt=False)

    # -- deletion ----------------------------------------------------------

    async def destroy(self) -> ReconcileReport:
        """Delete every record under the root prefix in teardown order.

        Declared resources are ordered by the edges declared in this run;
        records the run does not declare fall back to their recorded edges.
        """
        root = self.run.root
        records = await self.records_under(root.prefix)
        declared = {
            fqn: resource.dependencies
            for fqn, resource in self.run.resources.items()
            if fqn in records
        }
        self.log.info("destroy_started", count=len(records))
        report = await self.delete_records(records, dependencies=declared)

        deleted = set(report.deleted)
        for fqn, resource in self.run.resources.items():
            if fqn in report.failed:
                resource.reject(ProviderError(report.failed[fqn], fqn=fqn))
            elif fqn in report.blocked:
                resource.reject(ProviderError(f"Deletion of {fqn} was blocked", fqn=fqn))
            else:
                if fqn in deleted:
                    resource.status = ResourceStatus.deleted
                resource.resolve(None)
        return report

    async def records_under(self, prefix: str) -> dict[str, ResourceRecord]:
        records = await self.state.all(prefix)
        return {record.fqn: record for record in records.values()}

    async def delete_records(
        self,
        records: Mapping[str, ResourceRecord],
        dependencies: Mapping[str, Iterable[str]] | None = None,
        strategy: DestroyStrategy | str | None = None,
    ) -> ReconcileReport:
        """Delete ``records`` so that dependents always go before their dependencies.

        ``dependencies`` replaces the recorded edges of the records it names.
        A record is only deleted after every dependent within ``records`` was
        deleted; when a dependent fails or is blocked, its dependencies are
        left in place and reported as blocked. The ``sequential`` strategy
        deletes one record at a time in teardown order, ``parallel`` deletes
        every record as soon as its dependents are gone.
        """
        overrides = dependencies or {}
        strategy = DestroyStrategy(strategy or self.run.destroy_strategy)
        graph: dict[str, list[str]] = {}
        for fqn, record in records.items():
            deps = overrides[fqn] if fqn in overrides else record.dependencies
            graph[fqn] = [dep for dep in dict.fromkeys(deps) if dep in records]

        order = teardown_order(graph)
        dependents: dict[str, list[str]] = {fqn: [] for fqn in graph}
        for fqn, deps in graph.items():
            for dep in deps:
                dependents[dep].append(fqn)

        report = ReconcileReport()
        finished = {fqn: asyncio.Event() for fqn in graph}
        removed: set[str] = set()

        async def delete_one(fqn: str) -> None:
            try:
                for dependent in dependents[fqn]:
                    await finished[dependent].wait()
                if any(dependent not in removed for dependent in dependents[fqn]):
                    self.log.warning("resource_delete_blocked", fqn=fqn)
                    report.blocked.append(fqn)
                    return
                async with self.run.limit():
                    await self.delete_record(records[fqn])
                removed.add(fqn)
                report.deleted.append(fqn)
                self.run.collector.record(fqn, records[fqn].type, Action.delete)
            except StatecraftError as exc:
                self.log.error("resource_delete_failed", fqn=fqn, error=exc.message)
                report.failed[fqn] = exc.message
            finally:
                finished[fqn].set()

        self.log.debug("delete_records", count=len(order), strategy=strategy.value)
        if strategy is DestroyStrategy.sequential:
            for fqn in order:
                await delete_one(fqn)
        else:
            await asyncio.gather(*(delete_one(fqn) for fqn in order))
        return report

    async def delete_record(self, record: ResourceRecord) -> None:
        """Delete one persisted resource through its provider and drop its record."""
        stored = await self.state.get(record.prefix, record.id)
        if stored is None or stored.fqn != record.fqn:
            raise StoreIOError(
                f"State record for {record.fqn} is not stored under its own key",
                {"fqn": record.fqn, "key": f"{record.prefix}/{record.id}"},
            )

        if record.output is None and not record.replaced:
            self.log.warning(
                "resource_removed_without_output", fqn=record.fqn, status=record.status.value
            )
            await self.state.delete(record.prefix, record.id)
            self.run.collector.record_transition(record.fqn, ResourceStatus.deleted.value)
            return

        provider = self._provider_for(record)
        resource = self.run.resources.get(record.fqn)
        deleting = record.model_copy(update={"status": ResourceStatus.deleting, "error": None})
        await self._persist(deleting, resource)

        scope = self.run.scope_for(record.prefix)
        try:
            deleting = await self._delete_replaced_objects(provider, scope, deleting)
        except ProviderError as error:
            current = await self.state.get(record.prefix, record.id) or deleting
            await self._record_failure(current, error, resource)
            raise

        if record.output is not None:
            ctx = self._context(scope, record, prior_props=record.props)
            ctx.deleting = True
            self.log.info("resource_deleting", fqn=record.fqn, type=record.type)
            try:
                await provider.delete(ctx, record.output)
            except Exception as exc:
                error = self._wrap(exc, record.fqn, "delete")
                await self._record_failure(deleting, error, resource)
                if error is exc:
                    raise
                raise error from exc

        await self.state.delete(record.prefix, record.id)
        self.run.collector.record_transition(record.fqn, ResourceStatus.deleted.value)

    async def delete_replaced(self) -> ReconcileReport:
        """Delete objects superseded by ``ctx.replace()`` during this run.

        Runs after every declared resource was applied so dependents already
        point at the replacements. A failure keeps the superseded object on
        the record; the next run retries it.
        """
        report = ReconcileReport()
        for fqn in dict.fromkeys(self.run.replacements):
            resource = self.run.resources[fqn]
            try:
                record = await self.state.get(resource.scope.prefix, resource.id)
                if record is None or not record.replaced:
                    continue
                self._check_identity(record, fqn)
                async with self.run.limit():
                    await self._delete_replaced_objects(resource.provider, resource.scope, record)
            except StatecraftError as exc:
                self.log.error("replaced_object_delete_failed", fqn=fqn, error=exc.message)
                report.failed[fqn] = exc.message
                continue
            report.deleted.append(fqn)
        return report

    async def _delete_replaced_objects(
        self, provider: Any, scope: Any, record: ResourceRecord
    ) -> ResourceRecord:
        """Delete superseded objects oldest first, persisting progress after each one."""
        while record.replaced:
            old = record.replaced[0]
            ctx = self._context(scope, record, prior_props=old.props)
            ctx.output = old.output
            ctx.deleting = True
            self.log.info("replaced_object_deleting", fqn=record.fqn, type=record.type)
            try:
                await provider.delete(ctx, old.output)
            except Exception as exc:
                error = self._wrap(exc, record.fqn, "delete replaced object of")
                if error is exc:
                    raise
                raise error from exc
            record = record.model_copy(update={"replaced": record.replaced[1:]})
            await self.state.set(record.prefix, record.id, record)
        return record

    def _provider_for(self, record: ResourceRecord) -> Any:
        provider = self.run.providers.get(record.type)
        if provider is None:
            self.run.warn_once(
                f"provider:{record.type}", "provider_not_registered", type=record.type
            )
            raise ProviderError(
                f"No provider registered for resource type '{record.type}'",
                fqn=record.fqn,
                details={"type": record.type},
            )
        return provider

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _check_identity(record: ResourceRecord, fqn: str) -> None:
        if record.fqn != fqn:
            raise StoreIOError(
                f"State record for {fqn} belongs to {record.fqn}",
                {"fqn": fqn, "stored_fqn": record.fqn},
            )

    def _context(
        self, scope: Any, record: ResourceRecord, prior_props: Any = None
    ) -> ResourceContext:
        return ResourceContext(
            scope=scope,
            fqn=record.fqn,
            id=record.id,
            type=record.type,
            stage=self.run.root.stage,
            phase=self.run.root.phase.value,
            credentials=scope.credentials,
            props=prior_props,
            output=record.output,
        )

    async def _persist(self, record: ResourceRecord, resource: Resource | None) -> None:
        await self.state.set(record.prefix, record.id, record)
        if resource is not None:
            resource.status = record.status
        self.run.collector.record_transition(record.fqn, record.status.value)

    async def _record_failure(
        self, record: ResourceRecord, error: ProviderError, resource: Resource | None
    ) -> None:
        failed = record.model_copy(
            update={"status": ResourceStatus.failed, "error": error.message}
        )
        try:
            await self._persist(failed, resource)
        except StoreError as exc:
            self.log.error(
                "resource_failure_not_persisted", fqn=record.fqn, error=exc.message
            )

    @staticmethod
    def _wrap(exc: Exception, fqn: str, action: str) -> ProviderError:
        if isinstance(exc, ProviderError):
            if exc.fqn is None:
                exc.fqn = fqn
                exc.details.setdefault("fqn", fqn)
            return exc
        return ProviderError(f"Failed to {action} {fqn}: {exc}", fqn=fqn, cause=exc)
