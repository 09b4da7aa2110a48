from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from saludplus.models.base import Base, CreatedAtMixin


class OutboxKind(str, enum.Enum):
    append_fragment = "append_fragment"
    rewrite_doctor = "rewrite_doctor"


class HistoryOutbox(Base, CreatedAtMixin):
    """Document-store effect recorded in the same transaction as its relational write."""

    __tablename__ = "history_outbox"
    __table_args__ = (Index("idx_history_outbox_pending", "applied_at", "id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    kind: Mapped[OutboxKind] = mapped_column(
        Enum(OutboxKind, name="history_outbox_kind"), nullable=False
    )
    dedupe_key: Mapped[str] = mapped_column(String(120), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.applied_at is None
