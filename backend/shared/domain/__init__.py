"""
Pure domain rules shared by the REST API and the session client.

- pricing.py: promotion resolution and unit price computation
- grouping.py: line-item merge by normalized (name, unit price, note)
- cart_note.py: the structured add-ons/observation note of a cart line

Nothing here does I/O; both sides must compute identical numbers.
"""

from shared.domain.cart_note import AddonChoice, CartNote
from shared.domain.grouping import LineItem, group_line_items, line_item_key, normalize_item_note
from shared.domain.pricing import (
    LinePricing,
    PriceBreakdown,
    PromotionRule,
    apply_promotion,
    manual_discount_cents,
    price_line,
    resolve_promotion,
    weekday_of,
)

__all__ = [
    "AddonChoice",
    "CartNote",
    "LineItem",
    "group_line_items",
    "line_item_key",
    "normalize_item_note",
    "LinePricing",
    "PriceBreakdown",
    "PromotionRule",
    "apply_promotion",
    "manual_discount_cents",
    "price_line",
    "resolve_promotion",
    "weekday_of",
]
