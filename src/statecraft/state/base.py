"""Document-level state backend contract and key formatting helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote, unquote

Document = dict[str, Any]


def _quote(segment: str) -> str:
    quoted = quote(segment, safe="")
    # "." and ".." would be pseudo-entries in hierarchical storage
    if quoted in (".", ".."):
        return quoted.replace(".", "%2E")
    return quoted


def format_key(key: str) -> str:
    """Percent-encode each ``:``-separated segment and join them with ``/``."""
    return "/".join(_quote(segment) for segment in key.split(":"))


def parse_key(path: str) -> str:
    """Inverse of :func:`format_key`."""
    return ":".join(unquote(segment) for segment in path.split("/"))


def format_prefix(prefix: str) -> str:
    """Percent-encode each ``/``-separated segment of a scope prefix."""
    return "/".join(_quote(segment) for segment in prefix.split("/") if segment)


def storage_path(prefix: str, key: str) -> str:
    formatted = format_prefix(prefix)
    return f"{formatted}/{format_key(key)}" if formatted else format_key(key)


def relative_key(prefix: str, path: str) -> str | None:
    """Logical key of ``path`` relative to ``prefix``, or None if outside it."""
    formatted = format_prefix(prefix)
    if not formatted:
        return parse_key(path)
    if not path.startswith(formatted + "/"):
        return None
    return parse_key(path[len(formatted) + 1 :])


class StateBackend(ABC):
    """Durable key/value persistence of JSON documents scoped by prefix.

    All operations may raise ``StoreUnavailable`` or ``StoreIOError``.
    """

    async def init(self) -> None:
        """Create the backing container if one is required."""

    async def close(self) -> None:
        """Release connections held by the backend."""

    @abstractmethod
    async def get(self, prefix: str, key: str) -> Document | None:
        ...

    async def get_batch(self, prefix: str, keys: list[str]) -> dict[str, Document]:
        batch: dict[str, Document] = {}
        for key in keys:
            document = await self.get(prefix, key)
            if document is not None:
                batch[key] = document
        return batch

    @abstractmethod
    async def list(self, prefix: str) -> list[str]:
        ...

    async def count(self, prefix: str) -> int:
        return len(await self.list(prefix))

    async def all(self, prefix: str) -> dict[str, Document]:
        return await self.get_batch(prefix, await self.list(prefix))

    @abstractmethod
    async def set(self, prefix: str, key: str, document: Document) -> None:
        ...

    @abstractmethod
    async def delete(self, prefix: str, key: str) -> None:
        ...
