"""
Promotion Models: Promotion, PromotionProduct.
"""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import DiscountType, PromotionScope
from shared.domain.pricing import PromotionRule
from .base import Base, BigIntPK, TimestampMixin


class Promotion(TimestampMixin, Base):
    """
    Weekday promotion, GLOBAL or limited to a set of products.

    Two active PRODUCT promotions never share a product and a weekday;
    PromotionService checks this before every create/update/activate.
    """

    __tablename__ = "promotion"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(Text, default=PromotionScope.GLOBAL, nullable=False)
    discount_type: Mapped[str] = mapped_column(Text, default=DiscountType.PERCENT, nullable=False)
    discount_value: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    weekdays: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    products: Mapped[list["PromotionProduct"]] = relationship(
        back_populates="promotion", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="chk_promotion_value_positive"),
    )

    @property
    def product_ids(self) -> list[int]:
        return sorted(link.product_id for link in self.products)

    def to_rule(self) -> PromotionRule:
        return PromotionRule(
            id=self.id,
            name=self.name,
            scope=self.scope,
            discount_type=self.discount_type,
            discount_value=float(self.discount_value),
            weekdays=frozenset(self.weekdays or []),
            active=self.active,
            product_ids=frozenset(self.product_ids),
        )


class PromotionProduct(Base):
    """Join table: products a PRODUCT-scoped promotion applies to."""

    __tablename__ = "promotion_product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    promotion_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("promotion.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )

    promotion: Mapped["Promotion"] = relationship(back_populates="products")

    __table_args__ = (
        UniqueConstraint("promotion_id", "product_id", name="uq_promotion_product"),
    )
