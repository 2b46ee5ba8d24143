from __future__ import annotations

import asyncio
import contextlib
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from statecraft.core.errors import ValidationError
from statecraft.engine.provider import ProviderRegistry
from statecraft.engine.resource import Resource
from statecraft.engine.results import ResultCollector
from statecraft.graph import DependencyGraph
from statecraft.logging import run_logger

if TYPE_CHECKING:
    from statecraft.scope import Scope


class DestroyStrategy(StrEnum):
    """How independent resources are torn down."""

    sequential = "sequential"
    parallel = "parallel"


class RunContext:
    """Per-run state shared by every scope of one tree.

    Owned by the root scope; holds the dependency graph, declared handles,
    provider registry, warn-once set and the result collector.
    """

    def __init__(
        self,
        root: Scope,
        providers: ProviderRegistry | None = None,
        max_concurrency: int | None = None,
        destroy_strategy: DestroyStrategy | str = DestroyStrategy.sequential,
    ) -> None:
        self.root = root
        self.graph = DependencyGraph()
        self.resources: dict[str, Resource] = {}
        self.providers = providers or ProviderRegistry()
        self.tasks: dict[str, asyncio.Task[None]] = {}
        self.scopes: dict[str, Scope] = {}
        self.collector = ResultCollector(root.name, root.stage, root.phase.value)
        self.max_concurrency = max_concurrency
        self.destroy_strategy = DestroyStrategy(destroy_strategy)
        # FQNs whose records hold superseded objects awaiting deletion
        self.replacements: list[str] = []
        self.engine: Any = None
        self._semaphore: asyncio.Semaphore | None = None
        self._warned: set[str] = set()
        self._started = time.monotonic()
        self.log: structlog.stdlib.BoundLogger = run_logger(root.name, root.stage, root.phase.value)

    def register_scope(self, scope: Scope) -> None:
        self.scopes[scope.prefix] = scope

    def register(self, resource: Resource) -> None:
        if resource.fqn in self.resources:
            raise ValidationError(
                f"Resource {resource.fqn} is already declared", {"fqn": resource.fqn}
            )
        self.providers.register(resource.provider)
        self.graph.add(resource.fqn, resource.dependencies)
        self.resources[resource.fqn] = resource

    def scope_for(self, prefix: str) -> Scope:
        return self.scopes.get(prefix, self.root)

    def limit(self) -> Any:
        """Context manager bounding concurrent provider and store work."""
        if not self.max_concurrency:
            return contextlib.nullcontext()
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore

    def warn_once(self, key: str, event: str, **kwargs: Any) -> None:
        if key in self._warned:
            return
        self._warned.add(key)
        self.log.warning(event, **kwargs)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started
