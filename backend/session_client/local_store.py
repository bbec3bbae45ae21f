"""
Local device persistence.

One JSON file per session under `client_state_dir` holding the guest
identity (so a reload does not prompt for a name again) and the checkout
draft. Cleared when the session expires.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from shared.config.logging import client_logger as logger
from shared.config.settings import settings


class LocalDeviceStore:
    def __init__(self, base_dir: str | os.PathLike | None = None):
        self._dir = Path(base_dir or settings.client_state_dir)

    def _path(self, session_id: int) -> Path:
        return self._dir / f"session-{int(session_id)}.json"

    def _load(self, session_id: int) -> dict[str, Any]:
        path = self._path(session_id)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable device state", session_id=session_id, error=str(e))
            path.unlink(missing_ok=True)
            return {}
        if not isinstance(data, dict):
            logger.warning("Discarding malformed device state", session_id=session_id)
            path.unlink(missing_ok=True)
            return {}
        return data

    def _save(self, session_id: int, data: dict[str, Any]) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(session_id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)

    # =========================================================================
    # Guest identity
    # =========================================================================

    def save_guest(self, session_id: int, guest: dict[str, Any]) -> None:
        data = self._load(session_id)
        data["guest"] = {
            "id": int(guest["id"]),
            "name": str(guest.get("name") or ""),
            "is_host": bool(guest.get("is_host")),
        }
        self._save(session_id, data)

    def load_guest(self, session_id: int) -> dict[str, Any] | None:
        guest = self._load(session_id).get("guest")
        if not isinstance(guest, dict) or not isinstance(guest.get("id"), int):
            return None
        return guest

    # =========================================================================
    # Checkout draft
    # =========================================================================

    def save_draft(self, session_id: int, draft: dict[str, Any]) -> None:
        data = self._load(session_id)
        data["draft"] = dict(draft)
        self._save(session_id, data)

    def load_draft(self, session_id: int) -> dict[str, Any]:
        draft = self._load(session_id).get("draft")
        return draft if isinstance(draft, dict) else {}

    def clear_session(self, session_id: int) -> None:
        """Forget everything stored for the session. Safe to call twice."""
        self._path(session_id).unlink(missing_ok=True)
