from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from statecraft.core.errors import StoreIOError, StoreUnavailable
from statecraft.db.models import StateDocument
from statecraft.db.session import create_engine, create_schema, create_session_factory
from statecraft.state.base import (
    Document,
    StateBackend,
    format_prefix,
    relative_key,
    storage_path,
)

logger = structlog.get_logger()


class SqliteStateBackend(StateBackend):
    """Embedded-database backend: one row per key in ``state_documents``."""

    def __init__(
        self,
        database_url: str,
        *,
        echo: bool = False,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._engine = engine or create_engine(database_url, echo=echo)
        self._session_factory = create_session_factory(self._engine)

    async def init(self) -> None:
        try:
            await create_schema(self._engine)
        except OperationalError as exc:
            raise StoreUnavailable("State database is unavailable") from exc

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except OperationalError as exc:
            logger.error("state_db_unavailable", error=str(exc))
            raise StoreUnavailable("State database is unavailable") from exc
        except SQLAlchemyError as exc:
            logger.error("state_db_error", error=str(exc))
            raise StoreIOError("State database operation failed") from exc

    async def get(self, prefix: str, key: str) -> Document | None:
        stmt = select(StateDocument.document).where(
            StateDocument.path == storage_path(prefix, key)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_batch(self, prefix: str, keys: list[str]) -> dict[str, Document]:
        if not keys:
            return {}
        paths = {storage_path(prefix, key): key for key in keys}
        stmt = select(StateDocument.path, StateDocument.document).where(
            StateDocument.path.in_(list(paths))
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            found = {path: document for path, document in result.all()}
        return {paths[path]: found[path] for path in paths if path in found}

    async def list(self, prefix: str) -> list[str]:
        formatted = format_prefix(prefix)
        stmt = select(StateDocument.path).order_by(StateDocument.path)
        if formatted:
            stmt = stmt.where(StateDocument.path.startswith(formatted + "/", autoescape=True))
        async with self._session() as session:
            result = await session.execute(stmt)
            paths = result.scalars().all()
        keys = [relative_key(prefix, path) for path in paths]
        return [key for key in keys if key is not None]

    async def set(self, prefix: str, key: str, document: Document) -> None:
        now = datetime.now(timezone.utc)
        stmt = insert(StateDocument).values(
            path=storage_path(prefix, key),
            prefix=format_prefix(prefix),
            key=key,
            document=document,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[StateDocument.path],
            set_={"document": stmt.excluded.document, "updated_at": now},
        )
        async with self._session() as session:
            await session.execute(stmt)
            await session.commit()

    async def delete(self, prefix: str, key: str) -> None:
        stmt = delete(StateDocument).where(StateDocument.path == storage_path(prefix, key))
        async with self._session() as session:
            await session.execute(stmt)
            await session.commit()
