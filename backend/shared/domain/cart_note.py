"""
Structured note attached to a cart line.

A cart line's note carries the selected add-ons and a free-text
observation. It is stored as canonical JSON so that two lines with the same
selection compare byte-identical; a line with neither add-ons nor an
observation stores NULL.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable

from shared.config.constants import MAX_OBSERVATION_LENGTH


@dataclass(frozen=True)
class AddonChoice:
    id: int
    name: str
    price_cents: int


@dataclass(frozen=True)
class CartNote:
    addon_ids: tuple[int, ...] = ()
    addon_names: tuple[str, ...] = ()
    addon_total_cents: int = 0
    observation: str = ""

    @classmethod
    def build(cls, addons: Iterable[AddonChoice] = (), observation: str | None = None) -> "CartNote":
        """Normalize: add-ons sorted by id, observation trimmed and capped."""
        chosen = sorted({a.id: a for a in addons}.values(), key=lambda a: a.id)
        return cls(
            addon_ids=tuple(a.id for a in chosen),
            addon_names=tuple(a.name for a in chosen),
            addon_total_cents=sum(max(0, a.price_cents) for a in chosen),
            observation=(observation or "").strip()[:MAX_OBSERVATION_LENGTH],
        )

    @property
    def is_empty(self) -> bool:
        return not self.addon_ids and not self.observation

    def to_storage(self) -> str | None:
        """Canonical JSON, or None for an empty note."""
        if self.is_empty:
            return None
        payload = {
            "addon_ids": list(self.addon_ids),
            "addon_names": list(self.addon_names),
            "addon_total_cents": self.addon_total_cents,
            "observation": self.observation,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_storage(cls, raw: str | None) -> "CartNote":
        """
        Parse a stored note. Anything that is not our JSON object is
        treated as a plain observation.
        """
        if not raw or not raw.strip():
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            return cls(observation=raw.strip())
        if not isinstance(data, dict):
            return cls(observation=raw.strip())

        ids = tuple(int(i) for i in data.get("addon_ids") or [])
        names = tuple(str(n) for n in data.get("addon_names") or [])
        return cls(
            addon_ids=ids,
            addon_names=names,
            addon_total_cents=max(0, int(data.get("addon_total_cents") or 0)),
            observation=str(data.get("observation") or "").strip(),
        )

    def to_dict(self) -> dict:
        return {
            "addon_ids": list(self.addon_ids),
            "addon_names": list(self.addon_names),
            "addon_total_cents": self.addon_total_cents,
            "observation": self.observation,
        }

    def render(self) -> str | None:
        """Human-readable note for order items and kitchen tickets."""
        lines = []
        if self.addon_names:
            lines.append("Add-ons: " + ", ".join(self.addon_names))
        if self.observation:
            lines.append("Note: " + self.observation)
        return "\n".join(lines) or None
