"""
Per-session change-feed over Redis pub/sub.

- event_schema.py: ChangeEvent (row-level invalidation signal)
- channels.py: session:{id}:{table} channel naming
- redis_pool.py: async connection pool
- circuit_breaker.py: fail-fast breaker and jittered backoff
- publisher.py: publish_change with retry
"""

from .channels import channel_session_feed, parse_feed_channel, session_feed_channels
from .circuit_breaker import (
    CircuitState,
    EventCircuitBreaker,
    calculate_retry_delay_with_jitter,
    get_event_circuit_breaker,
    reset_event_circuit_breaker,
)
from .event_schema import MAX_EVENT_SIZE, ChangeEvent
from .publisher import PublishSkippedError, publish_change
from .redis_pool import check_redis_health, close_redis_pool, get_redis_pool

__all__ = [
    "channel_session_feed",
    "parse_feed_channel",
    "session_feed_channels",
    "CircuitState",
    "EventCircuitBreaker",
    "calculate_retry_delay_with_jitter",
    "get_event_circuit_breaker",
    "reset_event_circuit_breaker",
    "MAX_EVENT_SIZE",
    "ChangeEvent",
    "PublishSkippedError",
    "publish_change",
    "check_redis_health",
    "close_redis_pool",
    "get_redis_pool",
]
