"""
Cart Models: CartItem, one guest's unsubmitted line.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.domain.cart_note import CartNote
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Product
    from .table import Guest, TableSession


class CartItem(TimestampMixin, Base):
    """
    An unsubmitted line in a guest's cart.

    Lines are partitioned by owning guest: only that guest's requests touch
    them. (guest, product, note) identifies a line; `note` holds the
    canonical JSON of a CartNote, or NULL for a plain item. A line is never
    stored with qty <= 0.
    """

    __tablename__ = "cart_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("table_session.id"), nullable=False
    )
    guest_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("session_guest.id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False
    )
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    session: Mapped["TableSession"] = relationship(back_populates="cart_items")
    guest: Mapped["Guest"] = relationship()
    product: Mapped["Product"] = relationship()

    __table_args__ = (
        Index("ix_cart_item_session_guest", "session_id", "guest_id"),
        CheckConstraint("qty > 0", name="ck_cart_item_qty_positive"),
    )

    @property
    def cart_note(self) -> CartNote:
        return CartNote.from_storage(self.note)

    def __repr__(self) -> str:
        return f"<CartItem(id={self.id}, guest_id={self.guest_id}, product_id={self.product_id}, qty={self.qty})>"
