"""Provider capability contract consumed by the lifecycle engine."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from statecraft.core.errors import ValidationError


@dataclass
class ResourceContext:
    """Everything a provider may know about the resource being acted on."""

    scope: Any  # Scope; Any to avoid a circular import at runtime
    fqn: str
    id: str
    type: str
    stage: str
    phase: str
    credentials: Mapping[str, Any] = field(default_factory=dict)
    props: Any = None
    output: Any = None
    deleting: bool = False
    replaced: bool = False

    def replace(self) -> None:
        """Mark the prior object as superseded by the one being returned.

        The engine keeps the prior output and props on the record and deletes
        the old object once every resource of the run has been applied.
        """
        if self.deleting:
            raise ValidationError(f"Cannot replace {self.fqn} while it is being deleted")
        self.replaced = True


@runtime_checkable
class Provider(Protocol):
    """Contract for resource providers.

    Providers must never touch the state store; all persistence flows through
    the engine. Calls may be repeated after a crash, so they must be safe to
    retry. ``read`` is optional and enables adoption of existing objects.
    """

    type: str

    async def create(self, ctx: ResourceContext, props: Any) -> Any:
        ...

    async def update(self, ctx: ResourceContext, props: Any, output: Any) -> Any:
        ...

    async def delete(self, ctx: ResourceContext, output: Any) -> None:
        ...


CreateFn = Callable[[ResourceContext, Any], Awaitable[Any]]
UpdateFn = Callable[[ResourceContext, Any, Any], Awaitable[Any]]
DeleteFn = Callable[[ResourceContext, Any], Awaitable[None]]
ReadFn = Callable[[ResourceContext], Awaitable[Any]]


class FunctionProvider:
    """Provider assembled from plain async callables.

    Without an ``update`` function, updates re-run ``create`` with the new props.
    """

    def __init__(
        self,
        type: str,
        *,
        create: CreateFn,
        delete: DeleteFn,
        update: UpdateFn | None = None,
        read: ReadFn | None = None,
    ) -> None:
        if not type:
            raise ValidationError("Provider type is required")
        self.type = type
        self._create = create
        self._update = update
        self._delete = delete
        if read is not None:
            self.read = read

    async def create(self, ctx: ResourceContext, props: Any) -> Any:
        return await self._create(ctx, props)

    async def update(self, ctx: ResourceContext, props: Any, output: Any) -> Any:
        if self._update is None:
            return await self._create(ctx, props)
        return await self._update(ctx, props, output)

    async def delete(self, ctx: ResourceContext, output: Any) -> None:
        await self._delete(ctx, output)

    def __repr__(self) -> str:
        return f"FunctionProvider({self.type!r})"


def supports_read(provider: Any) -> bool:
    return callable(getattr(provider, "read", None))


class ProviderRegistry:
    """Per-run registry mapping resource types to providers."""

    def __init__(self, providers: list[Any] | None = None) -> None:
        self._providers: dict[str, Any] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: Any) -> None:
        name = getattr(provider, "type", None)
        if not name:
            raise ValidationError("Provider type is required")
        existing = self._providers.get(name)
        if existing is not None and existing is not provider:
            raise ValidationError(
                f"Provider for type '{name}' is already registered", {"type": name}
            )
        self._providers[name] = provider

    def get(self, name: str) -> Any | None:
        return self._providers.get(name)

    def list(self) -> list[str]:
        return list(self._providers.keys())
