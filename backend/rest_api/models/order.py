"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import (
    ApprovalStatus,
    DiscountMode,
    OrderOrigin,
    OrderStatus,
    ServiceType,
)
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .table import Table, TableSession


class Order(TimestampMixin, Base):
    """
    What was sent to the kitchen for a session.

    Two orthogonal axes: `status` (fulfillment) and `approval_status`
    (the host gate in front of the kitchen). Pricing fields are computed
    server-side at creation. After FINISHED/CANCELLED only the printing
    fields change.
    """

    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("table_session.id"), nullable=False
    )
    table_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    origin: Mapped[str] = mapped_column(Text, default=OrderOrigin.CUSTOMER, nullable=False)
    parent_order_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("customer_order.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(Text, default=OrderStatus.PENDING, nullable=False, index=True)
    approval_status: Mapped[str] = mapped_column(
        Text, default=ApprovalStatus.APPROVED, nullable=False
    )

    created_by_guest_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("session_guest.id"), nullable=True, index=True
    )
    created_by_profile_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("staff_profile.id"), nullable=True
    )
    approved_by_guest_id: Mapped[Optional[int]] = mapped_column(BigIntPK, nullable=True)
    approved_by_profile_id: Mapped[Optional[int]] = mapped_column(BigIntPK, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Pricing (cents)
    subtotal_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    promo_discount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount_mode: Mapped[str] = mapped_column(Text, default=DiscountMode.NONE, nullable=False)
    discount_value: Mapped[float] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    delivery_fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    service_type: Mapped[str] = mapped_column(Text, default=ServiceType.ON_TABLE, nullable=False)
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    customer_phone: Mapped[Optional[str]] = mapped_column(Text)
    general_note: Mapped[Optional[str]] = mapped_column(Text)

    # Physical ticket tracking
    printed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    printed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    receipt_token: Mapped[Optional[str]] = mapped_column(Text, unique=True, nullable=True)

    session: Mapped["TableSession"] = relationship(back_populates="orders")
    table: Mapped["Table"] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    __table_args__ = (
        Index("ix_customer_order_session_status", "session_id", "status"),
        CheckConstraint("total_cents >= 0", name="chk_order_total_positive"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in OrderStatus.TERMINAL

    @property
    def is_pending_approval(self) -> bool:
        return self.approval_status == ApprovalStatus.PENDING_APPROVAL

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, session_id={self.session_id}, status={self.status}, "
            f"approval={self.approval_status})>"
        )


class OrderItem(Base):
    """
    Priced, named snapshot of a line at submission time.
    Later catalog edits never change it.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=True
    )
    name_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    added_by_name: Mapped[Optional[str]] = mapped_column(Text)

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("qty > 0", name="chk_order_item_qty_positive"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_item_price_positive"),
    )
