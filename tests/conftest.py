"""Root test configuration."""

import logging
from typing import Any

import pytest
import structlog

from statecraft.core.errors import ResourceExists
from statecraft.engine.provider import ResourceContext
from statecraft.state.memory import MemoryStateBackend


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class RecordingProvider:
    """In-memory provider that journals every lifecycle call.

    ``fail_create``/``fail_update``/``fail_delete`` hold resource ids whose
    calls raise; ``existing`` holds ids whose create reports a live object.
    """

    def __init__(self, type: str, journal: list[tuple[str, str]]) -> None:
        self.type = type
        self.journal = journal
        self.fail_create: set[str] = set()
        self.fail_update: set[str] = set()
        self.fail_delete: set[str] = set()
        self.existing: dict[str, Any] = {}
        self.seen_props: dict[str, Any] = {}

    def _output(self, ctx: ResourceContext, props: Any) -> dict[str, Any]:
        output = {"id": ctx.id, "url": f"https://{ctx.id}.example.com"}
        if isinstance(props, dict):
            output.update(props)
        return output

    async def create(self, ctx: ResourceContext, props: Any) -> Any:
        self.journal.append(("create", ctx.fqn))
        self.seen_props[ctx.fqn] = props
        if ctx.id in self.fail_create:
            raise RuntimeError(f"create of {ctx.id} failed")
        if ctx.id in self.existing:
            raise ResourceExists(f"{ctx.id} already exists", fqn=ctx.fqn)
        return self._output(ctx, props)

    async def update(self, ctx: ResourceContext, props: Any, output: Any) -> Any:
        self.journal.append(("update", ctx.fqn))
        self.seen_props[ctx.fqn] = props
        if ctx.id in self.fail_update:
            raise RuntimeError(f"update of {ctx.id} failed")
        merged = dict(output or {})
        merged.update(self._output(ctx, props))
        return merged

    async def delete(self, ctx: ResourceContext, output: Any) -> None:
        self.journal.append(("delete", ctx.fqn))
        if ctx.id in self.fail_delete:
            raise RuntimeError(f"delete of {ctx.id} failed")


class ReadableProvider(RecordingProvider):
    async def read(self, ctx: ResourceContext) -> Any:
        self.journal.append(("read", ctx.fqn))
        return self.existing[ctx.id]


@pytest.fixture
def journal() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def make_provider(journal):
    def factory(type: str = "test::thing", *, readable: bool = False) -> RecordingProvider:
        cls = ReadableProvider if readable else RecordingProvider
        return cls(type, journal)

    return factory


@pytest.fixture
def backend() -> MemoryStateBackend:
    return MemoryStateBackend()
