"""Declared resource handles and explicit output references."""

from __future__ import annotations

import asyncio
from collections.abc import Generator, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from statecraft.core.errors import ValidationError
from statecraft.state.models import ResourceStatus

if TYPE_CHECKING:
    from statecraft.scope import Scope


class OutputRef:
    """Read barrier on another resource's output.

    Placing a reference inside props records a dependency on the referenced
    resource; the engine substitutes the concrete value once it is available.
    """

    __slots__ = ("resource", "path")

    def __init__(self, resource: Resource, path: tuple[Any, ...] = ()) -> None:
        self.resource = resource
        self.path = path

    def __getitem__(self, item: Any) -> OutputRef:
        return OutputRef(self.resource, self.path + (item,))

    def resolve(self) -> Any:
        value = self.resource.output
        for part in self.path:
            value = value[part]
        return value

    def __repr__(self) -> str:
        path = "".join(f"[{part!r}]" for part in self.path)
        return f"OutputRef({self.resource.fqn}{path})"


class Resource:
    """Handle of a declared resource; awaiting it yields the resource's output."""

    def __init__(
        self,
        scope: Scope,
        provider: Any,
        id: str,
        props: Any,
        dependencies: list[str],
        adopt: bool,
    ) -> None:
        self.scope = scope
        self.provider = provider
        self.id = id
        self.props = props
        self.dependencies = dependencies
        self.adopt = adopt
        self.fqn = scope.fqn(id)
        self.status: ResourceStatus | None = None
        self._done = asyncio.Event()
        self._output: Any = None
        self._error: BaseException | None = None

    @property
    def type(self) -> str:
        return self.provider.type

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def output(self) -> Any:
        if not self._done.is_set():
            raise RuntimeError(f"Resource {self.fqn} has not completed yet")
        if self._error is not None:
            raise self._error
        return self._output

    def ref(self, *path: Any) -> OutputRef:
        return OutputRef(self, tuple(path))

    def __getitem__(self, item: Any) -> OutputRef:
        return self.ref(item)

    def resolve(self, output: Any) -> None:
        self._output = output
        self._done.set()

    def reject(self, error: BaseException) -> None:
        self._error = error
        self._done.set()

    async def wait(self) -> Any:
        """Wait for the resource, starting it (and its dependencies) if needed."""
        if not self._done.is_set():
            run = self.scope.run
            if run.root.phase.value == "destroy":
                raise ValidationError(f"Output of {self.fqn} is not available in the destroy phase")
            run.engine.start(self)
        await self._done.wait()
        return self.output

    def __await__(self) -> Generator[Any, None, Any]:
        return self.wait().__await__()

    def __repr__(self) -> str:
        return f"Resource({self.fqn}, type={self.type})"


def iter_refs(value: Any) -> Iterator[OutputRef]:
    """Yield every output reference nested in ``value``."""
    if isinstance(value, OutputRef):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)


def resolve_refs(value: Any) -> Any:
    """Copy of ``value`` with output references replaced by concrete values."""
    if isinstance(value, OutputRef):
        return value.resolve()
    if isinstance(value, Mapping):
        return {key: resolve_refs(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_refs(item) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_refs(item) for item in value)
    return value
