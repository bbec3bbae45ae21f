"""
Pricing resolver.

All money is integer cents. Weekdays are numbered 0 (Sunday) to 6
(Saturday), the numbering stored on promotions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from shared.config.constants import DiscountType, PromotionScope


@dataclass(frozen=True)
class PromotionRule:
    """Everything the resolver needs to know about a promotion."""

    id: int
    name: str
    scope: str
    discount_type: str
    discount_value: float
    weekdays: frozenset[int] = field(default_factory=frozenset)
    active: bool = True
    product_ids: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def from_dict(cls, data: dict) -> "PromotionRule":
        """Build from the menu API payload."""
        weekdays = frozenset(
            int(day) for day in data.get("weekdays") or [] if 0 <= int(day) <= 6
        )
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "Promotion",
            scope=PromotionScope.PRODUCT if data.get("scope") == PromotionScope.PRODUCT else PromotionScope.GLOBAL,
            discount_type=DiscountType.PERCENT if data.get("discount_type") == DiscountType.PERCENT else DiscountType.AMOUNT,
            discount_value=max(0.0, float(data.get("discount_value") or 0)),
            weekdays=weekdays,
            active=bool(data.get("active", True)),
            product_ids=frozenset(int(pid) for pid in data.get("product_ids") or []),
        )


@dataclass(frozen=True)
class PriceBreakdown:
    final_unit_price_cents: int
    discount_cents: int
    promo_name: str | None = None

    @property
    def has_promotion(self) -> bool:
        return self.discount_cents > 0


@dataclass(frozen=True)
class LinePricing:
    """Pricing of one line: product base price plus add-ons, times qty."""

    original_unit_price_cents: int  # base + add-ons, before promotion
    unit_price_cents: int  # final + add-ons
    unit_discount_cents: int
    qty: int
    promo_name: str | None = None

    @property
    def subtotal_cents(self) -> int:
        return self.original_unit_price_cents * self.qty

    @property
    def discount_cents(self) -> int:
        return self.unit_discount_cents * self.qty

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.qty


def weekday_of(now: date) -> int:
    """0 = Sunday ... 6 = Saturday (Python's weekday() starts on Monday)."""
    return (now.weekday() + 1) % 7


def resolve_promotion(
    product_id: int,
    promotions: Iterable[PromotionRule],
    now: date,
) -> PromotionRule | None:
    """
    Pick the promotion that applies to a product right now.

    Only active promotions valid on today's weekday are considered. A
    PRODUCT promotion naming the product wins over any GLOBAL one; among
    several candidates of the same kind the first one listed wins.
    """
    weekday = weekday_of(now)
    candidates = [p for p in promotions if p.active and weekday in p.weekdays]

    for promotion in candidates:
        if promotion.scope == PromotionScope.PRODUCT and product_id in promotion.product_ids:
            return promotion

    for promotion in candidates:
        if promotion.scope == PromotionScope.GLOBAL:
            return promotion

    return None


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def apply_promotion(base_price_cents: int, promotion: PromotionRule | None) -> PriceBreakdown:
    """
    Discount a unit price.

    AMOUNT takes min(base, value) off; PERCENT takes base * clamp(value, 0, 100)%
    rounded half-up to the cent. The result is never negative and never
    above the base price.
    """
    base = max(0, int(base_price_cents or 0))
    if promotion is None:
        return PriceBreakdown(final_unit_price_cents=base, discount_cents=0)

    value = max(0.0, float(promotion.discount_value or 0))
    if promotion.discount_type == DiscountType.PERCENT:
        percent = Decimal(str(min(100.0, value)))
        discount = _round_half_up(Decimal(base) * percent / Decimal(100))
    else:
        discount = min(base, int(value))

    discount = min(base, max(0, discount))
    return PriceBreakdown(
        final_unit_price_cents=base - discount,
        discount_cents=discount,
        promo_name=promotion.name,
    )


def manual_discount_cents(amount_cents: int, mode: str, value: float) -> int:
    """
    Staff discount on an already promotion-discounted amount.
    AMOUNT values are cents; PERCENT is clamped to 0..100 and rounds half-up.
    """
    amount = max(0, int(amount_cents or 0))
    value = max(0.0, float(value or 0))
    if mode == DiscountType.PERCENT:
        discount = _round_half_up(Decimal(amount) * Decimal(str(min(100.0, value))) / Decimal(100))
    elif mode == DiscountType.AMOUNT:
        discount = int(value)
    else:
        discount = 0
    return min(amount, max(0, discount))


def price_line(
    product_id: int,
    base_price_cents: int,
    addon_total_cents: int,
    qty: int,
    promotions: Iterable[PromotionRule],
    now: date,
) -> LinePricing:
    """
    Price a cart line. The promotion applies to the product price only;
    add-ons are charged at full price on top.
    """
    promotion = resolve_promotion(product_id, promotions, now)
    breakdown = apply_promotion(base_price_cents, promotion)
    addons = max(0, int(addon_total_cents or 0))
    base = max(0, int(base_price_cents or 0))
    return LinePricing(
        original_unit_price_cents=base + addons,
        unit_price_cents=breakdown.final_unit_price_cents + addons,
        unit_discount_cents=breakdown.discount_cents,
        qty=max(0, int(qty)),
        promo_name=breakdown.promo_name if breakdown.has_promotion else None,
    )
