"""
Redis subscriber for one session's change-feed.

Subscribes to the session's three channels and hands every valid
ChangeEvent to a callback. Malformed messages are dropped; connection
errors reconnect with jittered backoff.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import redis.asyncio as redis
import redis.exceptions

from shared.config.logging import client_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import (
    MAX_EVENT_SIZE,
    ChangeEvent,
    calculate_retry_delay_with_jitter,
    get_redis_pool,
    parse_feed_channel,
    session_feed_channels,
)

MAX_RECONNECT_ATTEMPTS = 10


class SessionFeedSubscriber:
    def __init__(
        self,
        session_id: int,
        on_event: Callable[[ChangeEvent], Awaitable[None]],
        redis_getter: Callable[[], Awaitable[redis.Redis]] = get_redis_pool,
        poll_timeout: float = 1.0,
    ):
        self._session_id = session_id
        self._on_event = on_event
        self._redis_getter = redis_getter
        self._poll_timeout = poll_timeout
        self._stopped = asyncio.Event()

    @property
    def channels(self) -> list[str]:
        return session_feed_channels(self._session_id)

    def stop(self) -> None:
        self._stopped.set()

    def parse(self, message: dict) -> ChangeEvent | None:
        """ChangeEvent from a pub/sub message, or None if it must be dropped."""
        if message.get("type") != "message":
            return None
        data = message.get("data")
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        if not isinstance(data, str) or len(data) > MAX_EVENT_SIZE:
            logger.warning("Dropping oversized or non-text feed message", session_id=self._session_id)
            return None

        try:
            channel = message.get("channel")
            if isinstance(channel, bytes):
                channel = channel.decode()
            session_id, table = parse_feed_channel(channel or "")
            event = ChangeEvent.from_json(data)
        except (ValueError, TypeError) as e:
            logger.warning("Dropping malformed feed message", session_id=self._session_id, error=str(e))
            return None

        if event.session_id != session_id or event.table != table:
            logger.warning(
                "Dropping feed message not matching its channel",
                channel=channel,
                event_session_id=event.session_id,
            )
            return None
        return event

    async def run(self) -> None:
        """Listen until stop() is called."""
        attempts = 0
        while not self._stopped.is_set():
            pubsub = None
            try:
                client = await self._redis_getter()
                pubsub = client.pubsub()
                await pubsub.subscribe(*self.channels)
                logger.info("Subscribed to session feed", session_id=self._session_id)
                attempts = 0

                while not self._stopped.is_set():
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=self._poll_timeout
                    )
                    if message is None:
                        continue
                    event = self.parse(message)
                    if event is not None:
                        await self._on_event(event)

            except redis.exceptions.TimeoutError:
                continue
            except (redis.exceptions.ConnectionError, OSError) as e:
                attempts += 1
                if attempts > MAX_RECONNECT_ATTEMPTS:
                    logger.error("Session feed unavailable, giving up", session_id=self._session_id)
                    raise
                delay = calculate_retry_delay_with_jitter(attempts - 1, max_delay=30.0)
                logger.warning(
                    "Session feed connection lost, reconnecting",
                    session_id=self._session_id,
                    attempt=attempts,
                    delay=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)
            finally:
                if pubsub is not None:
                    await self._close(pubsub)

    async def _close(self, pubsub) -> None:
        try:
            await asyncio.wait_for(
                pubsub.unsubscribe(), timeout=settings.redis_pubsub_cleanup_timeout
            )
        except (redis.exceptions.RedisError, OSError, asyncio.TimeoutError) as e:
            logger.debug("Pubsub unsubscribe failed", error=str(e))
        await pubsub.aclose()
