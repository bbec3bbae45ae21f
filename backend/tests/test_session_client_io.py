"""
Tests for the session client's I/O edges: HTTP gateway, feed subscriber,
device store and notification dedupe.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock

import httpx
import redis.exceptions

from session_client import (
    LocalDeviceStore,
    NotificationDeduper,
    SessionApiClient,
    SessionClientError,
    SessionFeedSubscriber,
    SessionGoneError,
)
from session_client import subscriber as subscriber_module
from shared.infrastructure.events import MAX_EVENT_SIZE, ChangeEvent


def mock_api(handler, **kwargs) -> SessionApiClient:
    return SessionApiClient(
        base_url="http://test",
        guest_id=10,
        transport=httpx.MockTransport(handler),
        read_retry_attempts=3,
        read_retry_delay=0,
        **kwargs,
    )


# =============================================================================
# HTTP gateway
# =============================================================================


class TestApiClient:
    @pytest.mark.asyncio
    async def test_guest_header_sent(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("X-Guest-Id"))
            return httpx.Response(200, json={"id": 1, "status": "OPEN"})

        async with mock_api(handler) as api:
            session = await api.get_session(1)

        assert session["status"] == "OPEN"
        assert seen == ["10"]

    @pytest.mark.asyncio
    async def test_reads_retry_on_5xx_and_transport_errors(self):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused", request=request)
            if len(attempts) == 2:
                return httpx.Response(503, json={"detail": "busy"})
            return httpx.Response(200, json={"session_id": 1, "lines": []})

        async with mock_api(handler) as api:
            cart = await api.get_cart(1)

        assert cart["lines"] == []
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_reads_give_up(self):
        def handler(request):
            return httpx.Response(500, json={"detail": "boom"})

        async with mock_api(handler) as api:
            with pytest.raises(SessionClientError) as exc_info:
                await api.get_orders(1)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_4xx_read_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(403, json={"detail": "Not allowed to access this session"})

        async with mock_api(handler) as api:
            with pytest.raises(SessionClientError) as exc_info:
                await api.get_cart(1)

        assert len(calls) == 1
        assert not isinstance(exc_info.value, SessionGoneError)
        assert "access this session" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_missing_session_is_gone(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "Session not found"})

        async with mock_api(handler) as api:
            with pytest.raises(SessionGoneError):
                await api.get_session(1)

    @pytest.mark.asyncio
    async def test_writes_never_retried(self):
        calls = []

        def handler(request):
            calls.append(request.method)
            return httpx.Response(503, json={"detail": "busy"})

        async with mock_api(handler) as api:
            with pytest.raises(SessionClientError):
                await api.submit_cart(1, "sem cebola")

        assert calls == ["POST"]

    @pytest.mark.asyncio
    async def test_write_transport_error_raised(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with mock_api(handler) as api:
            with pytest.raises(SessionClientError):
                await api.increment(1, product_id=5, delta=1)

    @pytest.mark.asyncio
    async def test_increment_body(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"line": None})

        async with mock_api(handler) as api:
            await api.increment(1, product_id=5, delta=-1, addon_ids=[2], observation="sem gelo")

        assert bodies == [{"product_id": 5, "delta": -1, "addon_ids": [2], "observation": "sem gelo"}]

    @pytest.mark.asyncio
    async def test_cleared_guest_sends_no_header(self):
        seen = []

        def handler(request):
            seen.append("X-Guest-Id" in request.headers)
            return httpx.Response(200, json={"products": [], "promotions": []})

        async with mock_api(handler) as api:
            api.set_guest(None)
            await api.get_menu()

        assert seen == [False]


# =============================================================================
# Feed subscriber
# =============================================================================


def feed_message(session_id=1, table="orders", data=None, channel=None):
    if data is None:
        data = ChangeEvent(event_type="INSERT", table=table, session_id=session_id, new={"id": 1}).to_json()
    return {
        "type": "message",
        "channel": channel or f"session:{session_id}:{table}".encode(),
        "data": data,
    }


class FakePubSub:
    def __init__(self, messages, subscriber):
        self.messages = list(messages)
        self.subscriber = subscriber
        self.subscribed = []
        self.unsubscribe = AsyncMock()
        self.aclose = AsyncMock()

    async def subscribe(self, *channels):
        self.subscribed.extend(channels)

    async def get_message(self, ignore_subscribe_messages=True, timeout=1.0):
        if self.messages:
            return self.messages.pop(0)
        self.subscriber.stop()
        return None


class TestSubscriberParse:
    def setup_method(self):
        self.subscriber = SessionFeedSubscriber(1, AsyncMock())

    def test_channels(self):
        assert sorted(self.subscriber.channels) == [
            "session:1:cart_items",
            "session:1:orders",
            "session:1:sessions",
        ]

    def test_valid_event(self):
        event = self.subscriber.parse(feed_message())
        assert event.table == "orders"
        assert event.row == {"id": 1}

    @pytest.mark.parametrize(
        "message",
        [
            {"type": "subscribe", "channel": b"session:1:orders", "data": 1},
            feed_message(data="not json"),
            feed_message(data=json.dumps({"event_type": "UPSERT", "table": "orders", "session_id": 1})),
            feed_message(data=json.dumps({"event_type": "INSERT", "table": "orders", "session_id": 1, "extra": 1})),
            feed_message(data="x" * (MAX_EVENT_SIZE + 1)),
            feed_message(channel=b"branch:1:waiters"),
            feed_message(session_id=2, channel=b"session:1:orders"),
            feed_message(table="sessions", channel=b"session:1:orders"),
        ],
    )
    def test_dropped(self, message):
        assert self.subscriber.parse(message) is None


class TestSubscriberRun:
    @pytest.mark.asyncio
    async def test_delivers_events_and_cleans_up(self):
        received = []

        async def on_event(event):
            received.append(event)

        subscriber = SessionFeedSubscriber(1, on_event, poll_timeout=0.01)
        pubsub = FakePubSub([feed_message(), feed_message(data="garbage")], subscriber)
        client = MagicMock()
        client.pubsub.return_value = pubsub
        subscriber._redis_getter = AsyncMock(return_value=client)

        await subscriber.run()

        assert len(received) == 1
        assert sorted(pubsub.subscribed) == sorted(subscriber.channels)
        pubsub.unsubscribe.assert_awaited_once()
        pubsub.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_error(self, monkeypatch):
        monkeypatch.setattr(subscriber_module, "calculate_retry_delay_with_jitter", lambda *a, **kw: 0)
        received = []

        async def on_event(event):
            received.append(event)

        subscriber = SessionFeedSubscriber(1, on_event, poll_timeout=0.01)
        client = MagicMock()
        client.pubsub.return_value = FakePubSub([feed_message()], subscriber)
        subscriber._redis_getter = AsyncMock(side_effect=[redis.exceptions.ConnectionError("down"), client])

        await subscriber.run()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_failures(self, monkeypatch):
        monkeypatch.setattr(subscriber_module, "calculate_retry_delay_with_jitter", lambda *a, **kw: 0)
        subscriber = SessionFeedSubscriber(1, AsyncMock())
        subscriber._redis_getter = AsyncMock(side_effect=redis.exceptions.ConnectionError("down"))

        with pytest.raises(redis.exceptions.ConnectionError):
            await subscriber.run()

        assert subscriber._redis_getter.await_count == subscriber_module.MAX_RECONNECT_ATTEMPTS + 1


# =============================================================================
# Device store and notifications
# =============================================================================


class TestLocalDeviceStore:
    def test_guest_roundtrip_and_clear(self, tmp_path):
        store = LocalDeviceStore(tmp_path)
        store.save_guest(3, {"id": 10, "name": "Alice", "is_host": True})
        store.save_draft(3, {"customer_name": "Alice"})

        assert store.load_guest(3) == {"id": 10, "name": "Alice", "is_host": True}
        assert store.load_draft(3) == {"customer_name": "Alice"}

        store.clear_session(3)
        store.clear_session(3)
        assert store.load_guest(3) is None
        assert store.load_draft(3) == {}

    def test_sessions_are_isolated(self, tmp_path):
        store = LocalDeviceStore(tmp_path)
        store.save_guest(1, {"id": 10})
        store.save_guest(2, {"id": 20})

        store.clear_session(1)

        assert store.load_guest(2)["id"] == 20

    def test_corrupt_file_discarded(self, tmp_path):
        store = LocalDeviceStore(tmp_path)
        (tmp_path / "session-4.json").write_text("{not json", encoding="utf-8")

        assert store.load_guest(4) is None
        assert not (tmp_path / "session-4.json").exists()


class TestNotificationDeduper:
    def test_window(self):
        sink = MagicMock()
        now = [0.0]
        deduper = NotificationDeduper(sink, window=1.2, clock=lambda: now[0])

        assert deduper.notify("Order ready", "body", "order-ready-1") is True
        now[0] = 1.0
        assert deduper.notify("Order ready", "body", "order-ready-1") is False
        assert deduper.notify("Order ready", "body", "order-ready-2") is True
        now[0] = 2.5
        assert deduper.notify("Order ready", "body", "order-ready-1") is True

        assert sink.notify.call_count == 3

    def test_reset(self):
        sink = MagicMock()
        deduper = NotificationDeduper(sink, window=60, clock=lambda: 0.0)
        deduper.notify("a", "b", "t")

        deduper.reset()

        assert deduper.notify("a", "b", "t") is True
