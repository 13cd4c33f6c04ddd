"""
Tests for the health check endpoint.
"""

import pytest

from core.circuit_breaker import CircuitBreaker


@pytest.mark.django_db
class TestHealthCheck:
    def test_plain_http_is_served_without_redirect(self, client):
        response = client.get("/health/", secure=False)

        assert response.status_code == 200
        assert "Location" not in response

    def test_healthy(self, client):
        response = client.get("/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["cache"] == "connected"
        assert data["providers"] == {"payd": "closed", "pesapal": "closed", "intasend": "closed"}

    def test_open_provider_circuit_is_degraded(self, client):
        breaker = CircuitBreaker("provider:pesapal")
        for _ in range(breaker.failure_threshold):
            breaker.record_failure()

        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["providers"]["pesapal"] == "open"
