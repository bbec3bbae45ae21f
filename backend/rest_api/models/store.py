"""
Store Models: StoreSettings, StaffProfile.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import ApprovalMode, Roles
from .base import Base, BigIntPK, TimestampMixin


class StoreSettings(TimestampMixin, Base):
    """Single-row store configuration."""

    __tablename__ = "store_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_name: Mapped[str] = mapped_column(Text, default="Restaurante", nullable=False)
    order_approval_mode: Mapped[str] = mapped_column(
        Text, default=ApprovalMode.HOST, nullable=False
    )


class StaffProfile(TimestampMixin, Base):
    """A staff member who can inject orders and manage sessions."""

    __tablename__ = "staff_profile"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, default=Roles.WAITER, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<StaffProfile(id={self.id}, role={self.role})>"
