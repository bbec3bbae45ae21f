"""
Circuit breaker for change-feed publishing.

When Redis is down the outbox processor fails fast instead of waiting for a
socket timeout on every pending row; rows stay PENDING and are retried once
the breaker lets calls through again.
"""

from __future__ import annotations

import random
import threading
import time
from enum import Enum

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Calls rejected
    HALF_OPEN = "half_open"  # Probing recovery


class EventCircuitBreaker:
    """Thread-safe breaker counting consecutive publish failures."""

    def __init__(
        self,
        name: str = "redis-publish",
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 3,
        clock=time.monotonic,
    ):
        self.name = name
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._half_open_max_calls = half_open_max_calls
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0
        self._half_open_calls = 0
        self._rejected_count = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def can_execute(self) -> bool:
        """True if a call may proceed, False while the circuit is open."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._clock() - self._opened_at < self._recovery_timeout:
                    self._rejected_count += 1
                    return False
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0
                logger.info("Circuit breaker half-open", breaker=self.name)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self._half_open_max_calls:
                    self._rejected_count += 1
                    return False
                self._half_open_calls += 1

            return True

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            tripped = (
                self._state == CircuitState.HALF_OPEN
                or (
                    self._state == CircuitState.CLOSED
                    and self._failure_count >= self._failure_threshold
                )
            )
            if tripped:
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                logger.error(
                    "Circuit breaker open",
                    breaker=self.name,
                    failure_count=self._failure_count,
                    threshold=self._failure_threshold,
                )

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("Circuit breaker closed", breaker=self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "rejected_count": self._rejected_count,
            }


_event_circuit_breaker: EventCircuitBreaker | None = None
_circuit_breaker_lock = threading.Lock()


def get_event_circuit_breaker() -> EventCircuitBreaker:
    """Get or create the publishing circuit breaker singleton."""
    global _event_circuit_breaker
    if _event_circuit_breaker is None:
        with _circuit_breaker_lock:
            if _event_circuit_breaker is None:
                _event_circuit_breaker = EventCircuitBreaker(
                    failure_threshold=settings.redis_publish_max_retries + 2,
                )
    return _event_circuit_breaker


def reset_event_circuit_breaker() -> None:
    """Drop the singleton (tests)."""
    global _event_circuit_breaker
    with _circuit_breaker_lock:
        _event_circuit_breaker = None


def calculate_retry_delay_with_jitter(attempt: int, base_delay: float = 0.5, max_delay: float = 10.0) -> float:
    """
    Exponential backoff with jitter: a random delay between base_delay and
    base_delay * 2^attempt, capped at max_delay.
    """
    exp_delay = min(base_delay * (2 ** attempt), max_delay)
    return random.uniform(base_delay, max(base_delay, exp_delay))
