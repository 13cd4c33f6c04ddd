"""
Infrastructure views.

Only the health check lives here; business endpoints belong to their apps.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

from core.circuit_breaker import CircuitBreaker, CircuitState

logger = logging.getLogger(__name__)


def _provider_circuits() -> dict[str, str]:
    from payments.providers.registry import ADAPTER_CLASSES

    return {str(name): CircuitBreaker(f"provider:{name}").state.value for name in ADAPTER_CLASSES}


def health_check(request):
    """
    Health check for Docker, load balancers and uptime monitors.

    The database is the only hard dependency: if it is unreachable the
    response is 503. Cache and provider circuits are reported for
    visibility; an open provider circuit marks the service "degraded"
    but still answers 200 because other providers keep working.

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "providers": {"payd": "closed", "pesapal": "open", "intasend": "closed"}
        }
    """
    health = {"status": "healthy", "database": "unknown", "cache": "unknown"}
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health["database"] = "connected"
    except DatabaseError as e:
        logger.error(f"Health check database failure: {e}")
        health["database"] = "disconnected"
        health["status"] = "unhealthy"
        status_code = 503

    # IGNORE_EXCEPTIONS is on for the Redis cache, so an outage shows up as a miss
    cache.set("health_check", "ok", timeout=1)
    health["cache"] = "connected" if cache.get("health_check") == "ok" else "disconnected"

    health["providers"] = _provider_circuits()
    if status_code == 200 and CircuitState.OPEN.value in health["providers"].values():
        health["status"] = "degraded"

    return JsonResponse(health, status=status_code)
