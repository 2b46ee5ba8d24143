from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class StateDocument(Base):
    __tablename__ = "state_documents"

    path: Mapped[str] = mapped_column(String(2048), primary_key=True)
    prefix: Mapped[str] = mapped_column(String(1024), nullable=False)
    key: Mapped[str] = mapped_column(String(1024), nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (Index("idx_state_documents_prefix", "prefix"),)
