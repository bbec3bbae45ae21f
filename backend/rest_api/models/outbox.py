"""
Outbox model for the transactional change-feed.

Every write to a cart line, order or session inserts an OutboxEvent in the
same transaction. The outbox processor publishes pending rows to the
session's Redis channel afterwards, so an event is published if and only
if its change was committed.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SQLEnum, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class OutboxStatus(str, Enum):
    """Status of an outbox event."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"  # Claimed by a processor
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"  # Gave up after max retries


class OutboxEvent(Base):
    """One row-level change waiting to be published on the change-feed."""

    __tablename__ = "outbox_event"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    event_type: Mapped[str] = mapped_column(String(10), nullable=False)  # INSERT/UPDATE/DELETE
    feed_table: Mapped[str] = mapped_column(String(20), nullable=False)  # cart_items/orders/sessions
    session_id: Mapped[int] = mapped_column(BigIntPK, nullable=False, index=True)
    row_id: Mapped[int] = mapped_column(BigIntPK, nullable=False)

    # {"new": {...}, "old": {...}} as JSON
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[OutboxStatus] = mapped_column(
        SQLEnum(OutboxStatus, name="outbox_status"),
        default=OutboxStatus.PENDING,
        nullable=False,
        index=True,
    )

    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_outbox_event_status_id", "status", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<OutboxEvent(id={self.id}, {self.event_type} {self.feed_table}, "
            f"session={self.session_id}, status={self.status.value})>"
        )
