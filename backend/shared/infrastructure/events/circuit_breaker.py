"""
Circuit Breaker for remote transports.

Used by the persistence gateway to decide when the remote store is
unreachable: while the circuit is OPEN every call goes to the local
mirror instead of waiting for a timeout on each attempt.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Callable

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failure mode - requests rejected
    HALF_OPEN = "half_open"  # Recovery testing


class CircuitBreaker:
    """
    Lightweight thread-safe circuit breaker.

    `time_fn` is injectable so recovery can be tested without sleeping.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 1,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 1,
        time_fn: Callable[[], float] = time.monotonic,
    ):
        self._name = name
        self._failure_threshold = max(1, failure_threshold)
        self._recovery_timeout = recovery_timeout
        self._half_open_max_calls = half_open_max_calls
        self._time = time_fn

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0
        self._half_open_calls = 0
        self._lock = threading.Lock()

        self._rejected_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    def can_execute(self) -> bool:
        """
        Check if a call can proceed.

        Returns True if allowed, False if circuit is open.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._time() - self._last_failure_time >= self._recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
                    self._half_open_calls = 1
                    logger.info("Circuit breaker transitioning to HALF_OPEN", breaker=self._name)
                    return True
                self._rejected_count += 1
                return False

            if self._half_open_calls >= self._half_open_max_calls:
                self._rejected_count += 1
                return False
            self._half_open_calls += 1
            return True

    def record_failure(self) -> bool:
        """
        Record a failure.

        Returns True when this failure opened the circuit.
        """
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._time()

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                logger.warning("Circuit breaker OPEN (half-open trial call failed)", breaker=self._name)
                return False
            if self._state == CircuitState.CLOSED and self._failure_count >= self._failure_threshold:
                self._state = CircuitState.OPEN
                logger.warning(
                    "Circuit breaker OPEN",
                    breaker=self._name,
                    failure_count=self._failure_count,
                    threshold=self._failure_threshold,
                )
                return True
            return False

    def record_success(self) -> bool:
        """
        Record a success.

        Returns True when this success closed a half-open circuit.
        """
        with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("Circuit breaker recovered to CLOSED", breaker=self._name)
                return True
            return False

    def get_stats(self) -> dict:
        """Get circuit breaker statistics."""
        with self._lock:
            return {
                "name": self._name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "rejected_count": self._rejected_count,
                "last_failure_time": self._last_failure_time,
            }
