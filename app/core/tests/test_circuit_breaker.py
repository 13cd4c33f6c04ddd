"""
Tests for the cache-backed CircuitBreaker used around provider calls.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from django.core.cache import cache

from core.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def circuit():
    return CircuitBreaker(name="provider:test", failure_threshold=3, recovery_timeout=5)


class TestFailureTracking:
    def test_starts_closed(self, circuit):
        assert circuit.state == CircuitState.CLOSED
        assert circuit.is_available() is True

    def test_opens_at_threshold(self, circuit):
        for _ in range(3):
            circuit.record_failure()

        assert circuit.state == CircuitState.OPEN
        assert circuit.is_available() is False

    def test_stays_closed_below_threshold(self, circuit):
        circuit.record_failure()
        circuit.record_failure()

        assert circuit.is_available() is True

    def test_success_resets_failures(self, circuit):
        circuit.record_failure()
        circuit.record_failure()
        circuit.record_success()
        circuit.record_failure()

        assert circuit.state == CircuitState.CLOSED


class TestRecovery:
    def test_half_open_after_timeout(self, circuit):
        # Only the breaker's clock moves; cache expiry keeps real time
        with patch("core.circuit_breaker.time") as clock:
            clock.time.return_value = 1000.0
            for _ in range(3):
                circuit.record_failure()

            clock.time.return_value = 1006.0
            assert circuit.is_available() is True

        assert circuit.state == CircuitState.HALF_OPEN

    def test_stays_open_before_timeout(self, circuit):
        with patch("core.circuit_breaker.time") as clock:
            clock.time.return_value = 1000.0
            for _ in range(3):
                circuit.record_failure()

            clock.time.return_value = 1004.0
            assert circuit.is_available() is False

        assert circuit.state == CircuitState.OPEN

    def test_trial_success_closes(self, circuit):
        cache.set(circuit._state_key, CircuitState.HALF_OPEN.value)

        circuit.record_success()

        assert circuit.state == CircuitState.CLOSED

    def test_trial_failure_reopens(self, circuit):
        cache.set(circuit._state_key, CircuitState.HALF_OPEN.value)

        circuit.record_failure()

        assert circuit.state == CircuitState.OPEN


class TestCallContextManager:
    def test_records_failure_and_reraises(self, circuit):
        for _ in range(3):
            with pytest.raises(RuntimeError):
                with circuit.call():
                    raise RuntimeError("boom")

        with pytest.raises(CircuitOpenError):
            with circuit.call():
                pass

    def test_reset_closes(self, circuit):
        for _ in range(3):
            circuit.record_failure()

        circuit.reset()

        assert circuit.is_available() is True

    def test_cache_error_fails_open(self, circuit):
        with patch("core.circuit_breaker.cache.get", side_effect=ConnectionError("redis down")):
            assert circuit.is_available() is True
