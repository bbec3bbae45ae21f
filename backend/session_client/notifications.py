"""
User-visible notifications.

The coordinator only needs `notify(title, body, dedupe_tag)`; how the alert
is shown (sound, banner, push) is the sink's business. A burst of events
that would produce the same alert is collapsed by NotificationDeduper.
"""

from __future__ import annotations

import time
from typing import Callable, Protocol

from shared.config.logging import client_logger as logger
from shared.config.settings import settings


class NotificationSink(Protocol):
    def notify(self, title: str, body: str, dedupe_tag: str) -> None:
        ...


class LoggingNotificationSink:
    """Sink that writes alerts to the client log (headless devices, demos)."""

    def notify(self, title: str, body: str, dedupe_tag: str) -> None:
        logger.info("Notification", title=title, body=body, tag=dedupe_tag)


class NotificationDeduper:
    """
    Drops an alert whose (tag, title, body) was shown less than `window`
    seconds ago. One instance per session subscription.
    """

    def __init__(
        self,
        sink: NotificationSink,
        window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sink = sink
        self._window = window if window is not None else settings.notification_dedupe_window_seconds
        self._clock = clock
        self._last_shown: dict[str, float] = {}

    @staticmethod
    def key(tag: str, title: str, body: str) -> str:
        return f"{tag}:{title}:{body}"

    def notify(self, title: str, body: str, dedupe_tag: str) -> bool:
        """Forward to the sink unless it is a repeat. Returns True when shown."""
        now = self._clock()
        key = self.key(dedupe_tag, title, body)
        last = self._last_shown.get(key)
        if last is not None and now - last < self._window:
            logger.debug("Notification suppressed", tag=dedupe_tag)
            return False

        self._last_shown = {k: t for k, t in self._last_shown.items() if now - t < self._window}
        self._last_shown[key] = now
        self._sink.notify(title, body, dedupe_tag)
        return True

    def reset(self) -> None:
        self._last_shown.clear()
