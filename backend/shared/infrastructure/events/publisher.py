"""
Publishing change events to Redis with retry, size check and circuit breaker.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.logging import get_logger
from shared.config.settings import settings
from .channels import channel_session_feed
from .circuit_breaker import calculate_retry_delay_with_jitter, get_event_circuit_breaker
from .event_schema import MAX_EVENT_SIZE, ChangeEvent

logger = get_logger(__name__)


class PublishSkippedError(RuntimeError):
    """The circuit breaker is open; the event was not sent."""


def _validate_event_size(event_json: str, event: ChangeEvent) -> None:
    size = len(event_json.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(
            f"{event.table} {event.event_type} exceeds max size: {size} > {MAX_EVENT_SIZE} bytes"
        )


async def publish_change(redis_client: redis.Redis, event: ChangeEvent) -> int:
    """
    Publish a change event on its session feed channel.

    Returns:
        Number of subscribers that received the message.

    Raises:
        ValueError: If the event is too large.
        PublishSkippedError: If the circuit breaker is open.
        redis.RedisError: If all retries fail.
    """
    channel = channel_session_feed(event.session_id, event.table)
    event_json = event.to_json()
    _validate_event_size(event_json, event)

    circuit_breaker = get_event_circuit_breaker()
    if not circuit_breaker.can_execute():
        logger.warning("Publish skipped, circuit breaker open", channel=channel)
        raise PublishSkippedError(channel)

    max_retries = settings.redis_publish_max_retries
    last_error: Exception | None = None
    for attempt in range(max_retries):
        try:
            result = await redis_client.publish(channel, event_json)
            circuit_breaker.record_success()
            return result
        except (redis.RedisError, OSError) as e:
            last_error = e
            if attempt < max_retries - 1:
                delay = calculate_retry_delay_with_jitter(attempt, settings.redis_publish_retry_delay)
                logger.warning(
                    "Redis publish failed, retrying",
                    channel=channel,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay_seconds=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)

    logger.error("Redis publish failed after all retries", channel=channel, error=str(last_error))
    circuit_breaker.record_failure()
    raise last_error  # type: ignore[misc]
