"""
Catalog Models: Product, ProductAddon.

Only the fields ordering needs; menu editing lives elsewhere.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin


class Product(TimestampMixin, Base):
    """A sellable menu item. `price_cents` is the base price before promotions."""

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    addons: Mapped[list["ProductAddon"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", order_by="ProductAddon.id"
    )

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_product_price_positive"),
    )


class ProductAddon(TimestampMixin, Base):
    """Optional extra for a product ("bacon extra", "queijo")."""

    __tablename__ = "product_addon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    product: Mapped["Product"] = relationship(back_populates="addons")

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_product_addon_price_positive"),
    )
