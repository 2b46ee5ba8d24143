"""Hierarchical naming/configuration contexts that own declared resources."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from statecraft.core.errors import ConfigurationError, RunFailed, ValidationError
from statecraft.engine.context import DestroyStrategy, RunContext
from statecraft.engine.lifecycle import LifecycleEngine
from statecraft.engine.provider import ProviderRegistry
from statecraft.engine.reconciler import OrphanReconciler
from statecraft.engine.resource import OutputRef, Resource, iter_refs
from statecraft.engine.results import RunResult
from statecraft.serde import Serde, Tag
from statecraft.state.base import StateBackend
from statecraft.state.store import StateStore

DEFAULT_STAGE = "dev"

_RESERVED = ("/", ":")
_ROOT_ONLY = (
    "stage",
    "phase",
    "state_store",
    "password",
    "max_concurrency",
    "destroy_strategy",
    "providers",
)


class Phase(StrEnum):
    up = "up"
    destroy = "destroy"
    read = "read"


def _check_name(kind: str, name: str) -> None:
    if not name or any(char in name for char in _RESERVED):
        raise ValidationError(
            f"Invalid {kind} '{name}': must be non-empty and contain none of {' '.join(_RESERVED)}",
            {kind: name},
        )


class Scope:
    """Naming and configuration context for a group of resources.

    The root scope of a tree owns the run: its chain is ``[name, stage]`` and
    it carries the state store, the encryption password and a
    :class:`RunContext`. Child scopes append their name to the chain and
    inherit every option they do not override.

    Example:
        >>> async with Scope("shop", state_store=MemoryStateBackend()) as app:
        ...     db = app.declare(database, "db", {"size": 1})
        ...     api = app.declare(service, "api", {"url": db["url"]})
    """

    __serde_tag__ = Tag.scope

    def __init__(
        self,
        name: str,
        *,
        parent: Scope | None = None,
        stage: str | None = None,
        phase: Phase | str | None = None,
        state_store: StateStore | StateBackend | None = None,
        password: str | None = None,
        credentials: Mapping[str, Any] | None = None,
        adopt: bool | None = None,
        force: bool | None = None,
        max_concurrency: int | None = None,
        destroy_strategy: DestroyStrategy | str | None = None,
        providers: ProviderRegistry | Iterable[Any] | None = None,
    ) -> None:
        _check_name("scope", name)
        self.name = name
        self.children: dict[str, Scope] = {}
        self.resources: dict[str, Resource] = {}
        self.result: RunResult | None = None
        self._closed = False

        if parent is not None:
            given = {
                "stage": stage,
                "phase": phase,
                "state_store": state_store,
                "password": password,
                "max_concurrency": max_concurrency,
                "destroy_strategy": destroy_strategy,
                "providers": providers,
            }
            overridden = [key for key in _ROOT_ONLY if given[key] is not None]
            if overridden:
                raise ValidationError(
                    f"Options {overridden} can only be set on the root scope",
                    {"scope": name},
                )
            if name in parent.children:
                raise ValidationError(
                    f"Scope '{name}' already exists in {parent.prefix}", {"scope": name}
                )
            self._parent: weakref.ReferenceType[Scope] | None = weakref.ref(parent)
            self.stage = parent.stage
            self.phase = parent.phase
            self.password = parent.password
            self.state = parent.state
            self.credentials: dict[str, Any] = {**parent.credentials, **(credentials or {})}
            self.adopt = parent.adopt if adopt is None else adopt
            self.force = parent.force if force is None else force
            self.chain: list[str] = parent.chain + [name]
            self.run: RunContext = parent.run
            parent.children[name] = self
        else:
            if state_store is None:
                raise ConfigurationError("A state store is required for the root scope")
            self._parent = None
            self.stage = stage or DEFAULT_STAGE
            _check_name("stage", self.stage)
            self.phase = Phase(phase or Phase.up)
            self.password = password
            backend = state_store.backend if isinstance(state_store, StateStore) else state_store
            self.state = StateStore(backend, Serde(password))
            self.credentials = dict(credentials or {})
            self.adopt = bool(adopt)
            self.force = bool(force)
            self.chain = [name, self.stage]
            if providers is not None and not isinstance(providers, ProviderRegistry):
                providers = ProviderRegistry(list(providers))
            self.run = RunContext(
                self,
                providers,
                max_concurrency,
                destroy_strategy or DestroyStrategy.sequential,
            )
            self.run.engine = LifecycleEngine(self.run)

        self.run.register_scope(self)

    @property
    def parent(self) -> Scope | None:
        return self._parent() if self._parent is not None else None

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def destroy_strategy(self) -> DestroyStrategy:
        return self.run.destroy_strategy

    @property
    def prefix(self) -> str:
        return "/".join(self.chain)

    def fqn(self, id: str) -> str:
        return f"{self.prefix}/{id}"

    def scope(self, name: str, **overrides: Any) -> Scope:
        """Create a nested child scope."""
        return Scope(name, parent=self, **overrides)

    def declare(
        self,
        provider: Any,
        id: str,
        props: Any = None,
        *,
        depends_on: Iterable[Resource | OutputRef] = (),
        adopt: bool | None = None,
    ) -> Resource:
        """Declare a resource in this scope and return its handle.

        Dependencies are ``depends_on`` plus every :class:`OutputRef` found in
        ``props``.
        """
        if self._closed:
            raise ValidationError(f"Scope {self.prefix} is already closed")
        _check_name("resource id", id)
        if id in self.resources:
            raise ValidationError(
                f"Resource '{id}' is already declared in {self.prefix}", {"id": id}
            )

        dependencies: list[str] = []
        for dep in list(depends_on) + list(iter_refs(props)):
            handle = dep.resource if isinstance(dep, OutputRef) else dep
            if not isinstance(handle, Resource):
                raise ValidationError(
                    f"Dependencies must be resources or output references, got {type(dep).__name__}"
                )
            if handle.scope.run is not self.run:
                raise ValidationError(
                    f"Resource {handle.fqn} belongs to a different run", {"fqn": handle.fqn}
                )
            if handle.fqn not in dependencies:
                dependencies.append(handle.fqn)

        resource = Resource(
            self,
            provider,
            id,
            props,
            dependencies,
            adopt=self.adopt if adopt is None else adopt,
        )
        self.run.register(resource)
        self.resources[id] = resource
        return resource

    async def __aenter__(self) -> Scope:
        if self.is_root:
            await self.state.init()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        self._closed = True
        try:
            if exc_type is not None:
                self.run.log.error("scope_failed", scope=self.prefix, error=str(exc))
                if self.is_root:
                    await self._cancel_pending()
                return False
            await self.finalize()
        finally:
            if self.is_root:
                await self.state.close()
        return False

    async def finalize(self) -> None:
        """Execute this scope's pending work; the root also reconciles and reports."""
        engine: LifecycleEngine = self.run.engine

        if not self.is_root:
            if self.phase is not Phase.destroy:
                await engine.execute(self._own_resources())
            return

        if self.phase is Phase.destroy:
            self.run.collector.record_reconcile(await engine.destroy())
        else:
            await engine.execute(self.run.resources.values())
            if self.phase is Phase.up:
                if self.run.collector.has_failures:
                    self.run.log.warning("orphan_reconciliation_skipped", scope=self.prefix)
                else:
                    if self.run.replacements:
                        self.run.collector.record_replacements(await engine.delete_replaced())
                    report = await OrphanReconciler(self.run, engine).reconcile()
                    self.run.collector.record_reconcile(report)

        self.result = self.run.collector.finalize(self.run.elapsed)
        self.run.log.info(
            "run_finished",
            success=self.result.success,
            duration_seconds=round(self.result.duration_seconds, 3),
        )
        if not self.result.success:
            raise RunFailed(self.result.failures, self.result)

    async def _cancel_pending(self) -> None:
        pending = [task for task in self.run.tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _own_resources(self) -> list[Resource]:
        resources = list(self.resources.values())
        for child in self.children.values():
            resources.extend(child._own_resources())
        return resources

    def __repr__(self) -> str:
        return f"Scope({self.prefix})"
