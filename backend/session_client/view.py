"""
Derived view of a session for one guest.

Built from freshly fetched aggregates only; nothing here is patched from
event payloads. Cart totals use the same pricing resolver as the server so
the amount shown before submission matches the order total.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from shared.config.constants import ApprovalStatus, OrderStatus
from shared.domain.cart_note import CartNote
from shared.domain.pricing import PromotionRule, price_line


@dataclass(frozen=True)
class SessionView:
    session_id: int
    guest_id: int
    status: str
    is_host: bool
    cart_lines: list[dict[str, Any]] = field(default_factory=list)
    own_cart_lines: list[dict[str, Any]] = field(default_factory=list)
    own_cart_total_cents: int = 0
    own_promo_discount_cents: int = 0
    orders: list[dict[str, Any]] = field(default_factory=list)
    pending_approval_orders: list[dict[str, Any]] = field(default_factory=list)
    has_own_pending_approval: bool = False
    partial_total_cents: int = 0
    cart_open: bool = False


def _line_note(line: dict[str, Any]) -> CartNote:
    note = line.get("note") or {}
    return CartNote(
        addon_ids=tuple(note.get("addon_ids") or ()),
        addon_names=tuple(note.get("addon_names") or ()),
        addon_total_cents=int(note.get("addon_total_cents") or 0),
        observation=note.get("observation") or "",
    )


def build_view(
    session: dict[str, Any],
    guest_id: int,
    cart: dict[str, Any],
    orders: list[dict[str, Any]],
    promotions: list[PromotionRule],
    now: datetime,
    cart_open: bool = False,
) -> SessionView:
    lines = list(cart.get("lines") or [])
    own_lines = [line for line in lines if line.get("guest_id") == guest_id]

    total = 0
    discount = 0
    for line in own_lines:
        pricing = price_line(
            line["product_id"],
            line.get("base_price_cents") or 0,
            _line_note(line).addon_total_cents,
            line.get("qty") or 0,
            promotions,
            now,
        )
        total += pricing.total_cents
        discount += pricing.discount_cents

    is_host = session.get("host_guest_id") == guest_id
    pending = [o for o in orders if o.get("approval_status") == ApprovalStatus.PENDING_APPROVAL]
    billable = [
        o for o in orders
        if o.get("approval_status") == ApprovalStatus.APPROVED
        and o.get("status") != OrderStatus.CANCELLED
    ]

    return SessionView(
        session_id=session["id"],
        guest_id=guest_id,
        status=session.get("status", ""),
        is_host=is_host,
        cart_lines=lines,
        own_cart_lines=own_lines,
        own_cart_total_cents=total,
        own_promo_discount_cents=discount,
        orders=list(orders),
        pending_approval_orders=pending if is_host else [],
        has_own_pending_approval=any(o.get("created_by_guest_id") == guest_id for o in pending),
        partial_total_cents=sum(int(o.get("total_cents") or 0) for o in billable),
        cart_open=cart_open,
    )
