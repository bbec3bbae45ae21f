"""
Session client: keeps one device's view of a table session in sync.

- api_client.py: HTTP gateway to the REST API (reads retried, writes never)
- subscriber.py: Redis subscription to the session's change-feed
- coordinator.py: SessionCoordinator, reacts to change events by refetching
- view.py: derived session view (own cart, totals, pending approvals)
- notifications.py: notification sink and per-session dedupe
- local_store.py: file-backed device state (guest identity, checkout draft)

Usage:
    async with SessionApiClient(guest_id=guest_id) as api:
        coordinator = SessionCoordinator(api, session_id, guest_id, sink, store)
        await coordinator.start()
"""

from .api_client import SessionApiClient
from .coordinator import SessionCoordinator
from .errors import SessionClientError, SessionGoneError
from .local_store import LocalDeviceStore
from .notifications import LoggingNotificationSink, NotificationDeduper, NotificationSink
from .subscriber import SessionFeedSubscriber
from .view import SessionView, build_view

__all__ = [
    "SessionApiClient",
    "SessionCoordinator",
    "SessionClientError",
    "SessionGoneError",
    "LocalDeviceStore",
    "LoggingNotificationSink",
    "NotificationDeduper",
    "NotificationSink",
    "SessionFeedSubscriber",
    "SessionView",
    "build_view",
]
