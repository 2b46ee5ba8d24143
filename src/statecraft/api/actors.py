from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


def namespace_of(prefix: str) -> str:
    """First two prefix segments (app/stage) identify a namespace."""
    segments = [segment for segment in prefix.split("/") if segment]
    return "/".join(segments[:2])


class NamespaceActor:
    """Serializes writes for one namespace."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._lock = asyncio.Lock()

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            return await operation()


class ActorRegistry:
    """Lazily creates one actor per namespace."""

    def __init__(self) -> None:
        self._actors: dict[str, NamespaceActor] = {}

    def get(self, prefix: str) -> NamespaceActor:
        namespace = namespace_of(prefix)
        actor = self._actors.get(namespace)
        if actor is None:
            actor = NamespaceActor(namespace)
            self._actors[namespace] = actor
        return actor

    def __len__(self) -> int:
        return len(self._actors)
