from __future__ import annotations

import structlog

from statecraft.serde import Serde
from statecraft.state.base import StateBackend
from statecraft.state.models import ResourceRecord

logger = structlog.get_logger()


class StateStore:
    """Record-level view over a document backend.

    Records are encoded with :class:`Serde` on the way in (encrypting secrets)
    and decoded on the way out.
    """

    def __init__(self, backend: StateBackend, serde: Serde | None = None) -> None:
        self.backend = backend
        self.serde = serde or Serde()

    async def init(self) -> None:
        await self.backend.init()

    async def close(self) -> None:
        await self.backend.close()

    async def get(self, prefix: str, key: str) -> ResourceRecord | None:
        document = await self.backend.get(prefix, key)
        if document is None:
            return None
        return ResourceRecord.from_document(document, self.serde)

    async def get_batch(self, prefix: str, keys: list[str]) -> dict[str, ResourceRecord]:
        batch = await self.backend.get_batch(prefix, keys)
        return {
            key: ResourceRecord.from_document(document, self.serde)
            for key, document in batch.items()
        }

    async def list(self, prefix: str) -> list[str]:
        return await self.backend.list(prefix)

    async def count(self, prefix: str) -> int:
        return await self.backend.count(prefix)

    async def all(self, prefix: str) -> dict[str, ResourceRecord]:
        documents = await self.backend.all(prefix)
        return {
            key: ResourceRecord.from_document(document, self.serde)
            for key, document in documents.items()
        }

    async def set(self, prefix: str, key: str, record: ResourceRecord) -> None:
        document = record.to_document(self.serde)
        await self.backend.set(prefix, key, document)
        logger.debug("state_record_written", fqn=record.fqn, status=record.status.value)

    async def delete(self, prefix: str, key: str) -> None:
        await self.backend.delete(prefix, key)
        logger.debug("state_record_deleted", prefix=prefix, key=key)
