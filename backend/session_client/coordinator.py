"""
Session Coordinator.

Keeps one guest device in sync with its table session. Every change-feed
event is treated as an invalidation signal: the affected aggregate is
refetched through the API and the derived view rebuilt from it. Event
payloads are only used to decide which aggregate to refetch and whether
to raise a notification.

A background watchdog re-checks the session row periodically so an
expiry missed by the feed still purges local state.
"""

from __future__ import annotations

import asyncio
import contextvars
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol

from session_client.api_client import SessionApiClient
from session_client.errors import SessionClientError, SessionGoneError
from session_client.local_store import LocalDeviceStore
from session_client.notifications import NotificationDeduper, NotificationSink
from session_client.subscriber import SessionFeedSubscriber
from session_client.view import SessionView, build_view
from shared.config.constants import ApprovalStatus, ChangeType, FeedTable, OrderStatus, SessionStatus
from shared.config.logging import client_logger as logger
from shared.config.settings import settings
from shared.domain.pricing import PromotionRule
from shared.infrastructure.correlation import bind_actor
from shared.infrastructure.events import ChangeEvent
from shared.utils.clock import store_now


class FeedSubscriber(Protocol):
    async def run(self) -> None:
        ...

    def stop(self) -> None:
        ...


SubscriberFactory = Callable[[int, Callable[[ChangeEvent], Awaitable[None]]], FeedSubscriber]


def _default_subscriber(session_id: int, on_event: Callable[[ChangeEvent], Awaitable[None]]) -> FeedSubscriber:
    return SessionFeedSubscriber(session_id, on_event)


class SessionCoordinator:
    def __init__(
        self,
        api: SessionApiClient,
        session_id: int,
        guest_id: int,
        sink: NotificationSink,
        store: LocalDeviceStore,
        subscriber_factory: SubscriberFactory | None = None,
        poll_seconds: float | None = None,
        dedupe_window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = store_now,
        on_expired: Callable[[int], Any] | None = None,
    ):
        self.session_id = session_id
        self.guest_id = guest_id
        self._api = api
        self._store = store
        self._subscriber_factory = subscriber_factory or _default_subscriber
        self._poll_seconds = poll_seconds if poll_seconds is not None else settings.session_status_poll_seconds
        self._now = now
        self._on_expired = on_expired
        self._notifier = NotificationDeduper(sink, window=dedupe_window, clock=clock)

        self._session: dict[str, Any] | None = None
        self._cart: dict[str, Any] = {"lines": []}
        self._orders: list[dict[str, Any]] = []
        self._promotions: list[PromotionRule] = []
        self._cart_open = False
        self._view: SessionView | None = None

        self._purged = False
        self._last_status: str | None = None
        self._refresh_lock = asyncio.Lock()
        self._subscriber: FeedSubscriber | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def view(self) -> SessionView | None:
        return self._view

    @property
    def purged(self) -> bool:
        return self._purged

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Load the session and start listening. Purges right away if it is gone."""
        await self.refresh_all()
        if self._purged:
            return

        self._subscriber = self._subscriber_factory(self.session_id, self.handle_event)
        # Feed and watchdog logs carry this guest as actor.
        context = contextvars.copy_context()
        context.run(bind_actor, "guest", self.guest_id)
        self._tasks = [
            asyncio.create_task(self._run_feed(), name=f"session-feed-{self.session_id}", context=context),
            asyncio.create_task(self._watchdog(), name=f"session-watchdog-{self.session_id}", context=context.copy()),
        ]
        logger.info("Session coordinator started", session_id=self.session_id, guest_id=self.guest_id)

    async def stop(self) -> None:
        if self._subscriber is not None:
            self._subscriber.stop()
        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        self._subscriber = None
        self._notifier.reset()

    async def _run_feed(self) -> None:
        try:
            await self._subscriber.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # The watchdog keeps polling; only live updates are lost.
            logger.error("Session feed stopped", session_id=self.session_id, error=str(e))

    async def _watchdog(self) -> None:
        while not self._purged:
            await asyncio.sleep(self._poll_seconds)
            try:
                await self.check_session_status()
            except SessionClientError as e:
                logger.warning("Session status check failed", session_id=self.session_id, error=str(e))

    # =========================================================================
    # Event dispatch
    # =========================================================================

    async def handle_event(self, event: ChangeEvent) -> None:
        if self._purged or event.session_id != self.session_id:
            return

        try:
            if event.table == FeedTable.SESSIONS:
                await self._on_session_event(event)
            elif event.table == FeedTable.ORDERS:
                await self._on_order_event(event)
            elif event.table == FeedTable.CART_ITEMS:
                await self.refresh_cart()
        except SessionClientError as e:
            logger.warning(
                "Refetch after change event failed",
                session_id=self.session_id,
                table=event.table,
                error=str(e),
            )

    async def _on_session_event(self, event: ChangeEvent) -> None:
        if event.row.get("status") == SessionStatus.EXPIRED or event.event_type == ChangeType.DELETE:
            await self._purge()
            return
        await self.refresh_all()

    async def _on_order_event(self, event: ChangeEvent) -> None:
        new, old = event.new, event.old

        if event.event_type == ChangeType.INSERT and new.get("created_by_guest_id") != self.guest_id:
            self._notifier.notify(
                "Table updated",
                "A new order was sent for this table.",
                f"order-insert-{self.session_id}",
            )

        if event.event_type == ChangeType.UPDATE:
            if new.get("status") == OrderStatus.READY and old.get("status") != OrderStatus.READY:
                self._notifier.notify(
                    "Order ready",
                    "An order for this table is ready.",
                    f"order-ready-{self.session_id}",
                )

            if (
                new.get("approval_status") == ApprovalStatus.APPROVED
                and old.get("approval_status") != ApprovalStatus.APPROVED
                and new.get("created_by_guest_id") == self.guest_id
            ):
                self._cart_open = False
                await self.refresh_cart()

        await self.refresh_orders()

    # =========================================================================
    # Refetch
    # =========================================================================

    async def refresh_all(self) -> SessionView | None:
        async with self._refresh_lock:
            if self._purged:
                return None
            try:
                session = await self._api.get_session(self.session_id)
                cart = await self._api.get_cart(self.session_id)
                orders = await self._api.get_orders(self.session_id)
                menu = await self._api.get_menu()
            except SessionGoneError:
                session = None

            if session is None or session.get("status") == SessionStatus.EXPIRED:
                await self._purge_locked()
                return None

            self._session = session
            self._cart = cart
            self._orders = orders
            self._promotions = [PromotionRule.from_dict(p) for p in menu.get("promotions") or []]
            self._last_status = session.get("status")
            return self._rebuild()

    async def refresh_cart(self) -> SessionView | None:
        async with self._refresh_lock:
            if self._purged:
                return None
            try:
                self._cart = await self._api.get_cart(self.session_id)
            except SessionGoneError:
                await self._purge_locked()
                return None
            return self._rebuild()

    async def refresh_orders(self) -> SessionView | None:
        async with self._refresh_lock:
            if self._purged:
                return None
            try:
                self._orders = await self._api.get_orders(self.session_id)
            except SessionGoneError:
                await self._purge_locked()
                return None
            return self._rebuild()

    def _rebuild(self) -> SessionView | None:
        if self._session is None:
            return None
        self._view = build_view(
            self._session,
            self.guest_id,
            self._cart,
            self._orders,
            self._promotions,
            self._now(),
            cart_open=self._cart_open,
        )
        return self._view

    async def check_session_status(self) -> str | None:
        """Re-read the session row; purge when it is missing or expired."""
        async with self._refresh_lock:
            if self._purged:
                return SessionStatus.EXPIRED
            try:
                session = await self._api.get_session(self.session_id)
            except SessionGoneError:
                await self._purge_locked()
                return None

            status = session.get("status")
            if status == SessionStatus.EXPIRED:
                await self._purge_locked()
                return status

            changed = status != self._last_status
            self._session = session
            self._last_status = status
            if changed:
                self._rebuild()
            return status

    async def on_focus(self) -> None:
        """The device came back to the foreground."""
        status = await self.check_session_status()
        if status is not None and not self._purged:
            await self.refresh_all()

    # =========================================================================
    # Expiry
    # =========================================================================

    async def _purge(self) -> None:
        async with self._refresh_lock:
            await self._purge_locked()

    async def _purge_locked(self) -> None:
        if self._purged:
            return
        self._purged = True
        self._last_status = SessionStatus.EXPIRED

        self._store.clear_session(self.session_id)
        self._session = None
        self._cart = {"lines": []}
        self._orders = []
        self._cart_open = False
        self._view = None
        self._api.set_guest(None)

        if self._subscriber is not None:
            self._subscriber.stop()

        self._notifier.notify(
            "Session ended",
            "This table session was closed.",
            f"session-expired-{self.session_id}",
        )
        logger.info("Session expired, local state purged", session_id=self.session_id)

        if self._on_expired is not None:
            result = self._on_expired(self.session_id)
            if asyncio.iscoroutine(result):
                await result

    # =========================================================================
    # Guest actions
    # =========================================================================

    def open_cart(self) -> None:
        self._cart_open = True
        self._rebuild()

    def close_cart(self) -> None:
        self._cart_open = False
        self._rebuild()

    async def submit(self, general_note: str | None = None) -> dict:
        """
        Submit the guest's cart.

        Pending approval is re-checked against freshly fetched orders, not
        the cached view, so a second device cannot double-submit.
        """
        if self._purged:
            raise SessionGoneError("Session is no longer active")

        view = await self.refresh_orders()
        if view is not None and view.has_own_pending_approval:
            raise SessionClientError(
                "You already have an order waiting for approval", 409, "pending_approval"
            )

        order = await self._api.submit_cart(self.session_id, general_note)
        self._store.save_draft(self.session_id, {})
        self._cart_open = False
        await self.refresh_all()
        return order
