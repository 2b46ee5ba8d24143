from __future__ import annotations

import json

from statecraft.state.base import Document, StateBackend, relative_key, storage_path


class MemoryStateBackend(StateBackend):
    """Process-local backend for tests and dry runs.

    Documents are kept as JSON text so reads never alias written objects.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    async def get(self, prefix: str, key: str) -> Document | None:
        raw = self._documents.get(storage_path(prefix, key))
        return json.loads(raw) if raw is not None else None

    async def list(self, prefix: str) -> list[str]:
        keys = []
        for path in sorted(self._documents):
            key = relative_key(prefix, path)
            if key is not None:
                keys.append(key)
        return keys

    async def set(self, prefix: str, key: str, document: Document) -> None:
        self._documents[storage_path(prefix, key)] = json.dumps(document)

    async def delete(self, prefix: str, key: str) -> None:
        self._documents.pop(storage_path(prefix, key), None)
