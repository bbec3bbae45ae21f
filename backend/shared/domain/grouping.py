"""
Line-item grouping engine.

Collapses raw order lines into one line per normalized
(name, unit price, note) so kitchen tickets and totals never count the
same thing twice.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Iterable

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class LineItem:
    """A priced, named line as it appears on an order, ticket or receipt."""

    name_snapshot: str
    unit_price_cents: int
    qty: int
    note: str | None = None
    product_id: int | None = None
    added_by_name: str | None = None

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.qty

    @classmethod
    def from_row(cls, row: Any) -> "LineItem":
        """Build from any object exposing the order item attributes."""
        return cls(
            name_snapshot=row.name_snapshot,
            unit_price_cents=row.unit_price_cents,
            qty=row.qty,
            note=row.note,
            product_id=getattr(row, "product_id", None),
            added_by_name=getattr(row, "added_by_name", None),
        )


def _normalize_spaces(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def normalize_item_note(note: str | None) -> str | None:
    """
    CRLF -> LF, collapse whitespace on every line, drop empty lines.
    Returns None when nothing is left.
    """
    lines = (note or "").replace("\r\n", "\n").split("\n")
    normalized = "\n".join(line for line in (_normalize_spaces(raw) for raw in lines) if line)
    return normalized or None


def line_item_key(name_snapshot: str | None, unit_price_cents: int | None, note: str | None) -> tuple[str, int, str]:
    """Grouping key: (lowercased name, price, normalized note)."""
    return (
        _normalize_spaces(name_snapshot or "").lower(),
        max(0, int(unit_price_cents or 0)),
        normalize_item_note(note) or "",
    )


def group_line_items(items: Iterable[LineItem]) -> list[LineItem]:
    """
    Merge items sharing a grouping key, summing qty.

    Items with qty <= 0 are dropped before merging, so they can never cancel
    out a positive line. Output keeps first-seen order and the first-seen
    name; notes come out normalized.
    """
    grouped: list[LineItem] = []
    index_by_key: dict[tuple[str, int, str], int] = {}

    for item in items:
        qty = int(item.qty or 0)
        if qty <= 0:
            continue

        key = line_item_key(item.name_snapshot, item.unit_price_cents, item.note)
        existing = index_by_key.get(key)
        if existing is None:
            index_by_key[key] = len(grouped)
            grouped.append(replace(item, qty=qty, note=normalize_item_note(item.note)))
        else:
            current = grouped[existing]
            grouped[existing] = replace(current, qty=current.qty + qty)

    return grouped
