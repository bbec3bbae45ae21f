"""
Change-feed event schema.

A ChangeEvent is a row-level invalidation signal: which table changed, how,
for which session, and the row images before/after. Consumers must treat it
as "refetch now", never as a trusted delta.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from shared.config.constants import ChangeType, FeedTable

# Hard cap on the serialized size of a single event
MAX_EVENT_SIZE = 64 * 1024

_CHANGE_TYPES = (ChangeType.INSERT, ChangeType.UPDATE, ChangeType.DELETE)


@dataclass
class ChangeEvent:
    """
    {event_type: INSERT|UPDATE|DELETE, table, session_id, new, old}

    `new` is empty for DELETE, `old` is empty for INSERT.
    """

    event_type: str
    table: str
    session_id: int
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1

    def __post_init__(self) -> None:
        if self.event_type not in _CHANGE_TYPES:
            raise ValueError(f"Unknown change type: {self.event_type!r}")

        if self.table not in FeedTable.ALL:
            raise ValueError(f"Table {self.table!r} is not published on the change-feed")

        if not isinstance(self.session_id, int) or self.session_id <= 0:
            raise ValueError("ChangeEvent session_id must be a positive integer")

        if self.new is None:
            self.new = {}
        if self.old is None:
            self.old = {}
        if not isinstance(self.new, dict) or not isinstance(self.old, dict):
            raise ValueError("ChangeEvent new/old must be dicts")

    @property
    def row(self) -> dict[str, Any]:
        """The most recent image of the row (old image for deletes)."""
        return self.new or self.old

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        data = asdict(self)
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeEvent":
        """Deserialize event from JSON string (validated in __post_init__)."""
        data = json.loads(json_str)
        return cls(**data)
