"""
Table and Session Models: Table, TableSession, Guest.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import SessionStatus, TableStatus, TableType
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .cart import CartItem
    from .order import Order


class Table(TimestampMixin, Base):
    """
    A place orders are delivered to.

    DINING tables are physical and reached through the QR `token`.
    COUNTER tables belong to one staff profile; VIRTUAL tables are created
    by a waiter for an ad-hoc tab. `status` is a cached projection of
    whether the table has an active session.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)  # "Mesa 07"
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(Text, default=TableStatus.FREE, nullable=False, index=True)
    table_type: Mapped[str] = mapped_column(Text, default=TableType.DINING, nullable=False)
    owner_profile_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("staff_profile.id"), nullable=True, index=True
    )

    sessions: Mapped[list["TableSession"]] = relationship(back_populates="table")

    __table_args__ = (
        # One counter table per staff profile
        Index(
            "uq_restaurant_table_counter_owner",
            "owner_profile_id",
            unique=True,
            postgresql_where=text("table_type = 'COUNTER'"),
            sqlite_where=text("table_type = 'COUNTER'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, name={self.name!r}, status={self.status})>"


class TableSession(TimestampMixin, Base):
    """
    One dining visit at one table.

    A table has at most one OPEN or LOCKED session; the partial unique index
    below makes a second concurrent insert fail so the loser re-reads.
    `host_guest_id` is set once, by the first guest to join.
    """

    __tablename__ = "table_session"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, default=SessionStatus.OPEN, nullable=False, index=True)
    host_guest_id: Mapped[Optional[int]] = mapped_column(BigIntPK, nullable=True)
    opened_by_profile_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("staff_profile.id"), nullable=True
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    table: Mapped["Table"] = relationship(back_populates="sessions")
    guests: Mapped[list["Guest"]] = relationship(back_populates="session", order_by="Guest.id")
    cart_items: Mapped[list["CartItem"]] = relationship(back_populates="session")
    orders: Mapped[list["Order"]] = relationship(back_populates="session", order_by="Order.id")

    __table_args__ = (
        Index(
            "uq_table_session_active",
            "table_id",
            unique=True,
            postgresql_where=text("status IN ('OPEN', 'LOCKED')"),
            sqlite_where=text("status IN ('OPEN', 'LOCKED')"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in SessionStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<TableSession(id={self.id}, table_id={self.table_id}, status={self.status})>"


class Guest(TimestampMixin, Base):
    """
    Ephemeral, unauthenticated identity of one device within a session.
    Persisted client-side; a device that loses it joins as a new guest.
    """

    __tablename__ = "session_guest"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("table_session.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_host: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    session: Mapped["TableSession"] = relationship(back_populates="guests")

    def __repr__(self) -> str:
        return f"<Guest(id={self.id}, session_id={self.session_id}, is_host={self.is_host})>"
