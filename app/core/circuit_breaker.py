"""
Circuit breaker for outbound payment provider calls.

State lives in the Django cache so every web and Celery worker sees the
same circuit. When a provider keeps failing, calls fail fast for
recovery_timeout seconds instead of piling up behind HTTP timeouts.

States:
    - CLOSED: Calls pass through
    - OPEN: Calls fail fast with CircuitOpenError
    - HALF_OPEN: One trial call is let through; its result closes or
      reopens the circuit

Usage:
    from core.circuit_breaker import CircuitBreaker

    breaker = CircuitBreaker("provider:pesapal", failure_threshold=5)

    with breaker.call():
        response = requests.post(url, json=payload, timeout=15)

Cache errors never block a call: the breaker fails open.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

from django.core.cache import cache

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised instead of calling a service whose circuit is open."""


class CircuitBreaker:
    """
    Cache-backed circuit breaker.

    Args:
        name: Circuit identifier, e.g. "provider:payd"
        failure_threshold: Consecutive failures that open the circuit
        recovery_timeout: Seconds the circuit stays open before a trial call
    """

    cache_ttl = 3600

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state_key = f"circuit:{name}:state"
        self._failures_key = f"circuit:{name}:failures"
        self._opened_at_key = f"circuit:{name}:opened_at"

    @property
    def state(self) -> CircuitState:
        try:
            return CircuitState(cache.get(self._state_key, CircuitState.CLOSED.value))
        except ValueError:
            return CircuitState.CLOSED

    def is_available(self) -> bool:
        try:
            state = self.state
            if state != CircuitState.OPEN:
                return True

            opened_at = cache.get(self._opened_at_key)
            if opened_at and time.time() - opened_at >= self.recovery_timeout:
                cache.set(self._state_key, CircuitState.HALF_OPEN.value, timeout=self.cache_ttl)
                logger.info("Circuit half-open, allowing trial call", extra={"circuit": self.name})
                return True
            return False
        except Exception as e:
            logger.warning(f"Circuit cache error, failing open: {e}", extra={"circuit": self.name})
            return True

    def record_success(self) -> None:
        try:
            if self.state == CircuitState.HALF_OPEN:
                logger.info("Circuit closed after successful trial call", extra={"circuit": self.name})
            cache.set(self._state_key, CircuitState.CLOSED.value, timeout=self.cache_ttl)
            cache.set(self._failures_key, 0, timeout=self.cache_ttl)
        except Exception as e:
            logger.warning(f"Circuit failed to record success: {e}", extra={"circuit": self.name})

    def record_failure(self) -> None:
        try:
            if self.state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning("Circuit reopened after failed trial call", extra={"circuit": self.name})
                return

            try:
                failures = cache.incr(self._failures_key)
            except ValueError:
                cache.set(self._failures_key, 1, timeout=self.cache_ttl)
                failures = 1

            if failures >= self.failure_threshold:
                self._open()
                logger.warning(
                    f"Circuit opened after {failures} failures",
                    extra={"circuit": self.name, "failure_count": failures},
                )
        except Exception as e:
            logger.warning(f"Circuit failed to record failure: {e}", extra={"circuit": self.name})

    def reset(self) -> None:
        cache.delete_many([self._state_key, self._failures_key, self._opened_at_key])

    @contextmanager
    def call(self) -> Generator[None, None, None]:
        """
        Guard a block with the circuit.

        Raises CircuitOpenError without running the block when open. Any
        exception escaping the block counts as a failure.
        """
        if not self.is_available():
            raise CircuitOpenError(f"Circuit '{self.name}' is open")
        try:
            yield
        except Exception:
            self.record_failure()
            raise
        self.record_success()

    def _open(self) -> None:
        cache.set(self._state_key, CircuitState.OPEN.value, timeout=self.cache_ttl)
        cache.set(self._opened_at_key, time.time(), timeout=self.cache_ttl)

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self.state.value})"
