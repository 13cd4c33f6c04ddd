"""
Project-wide pytest configuration.

Configures settings for the test run and provides fixtures shared across
apps. App-specific fixtures are defined in each app's tests/conftest.py.
"""

from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient


def pytest_configure():
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures.
    # Scoped rates are nulled in place so views with throttle_scope still resolve.
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    rates = settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]
    for scope in rates:
        rates[scope] = None

    # Circuit breakers and throttles need a working cache without Redis
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.db"

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Test client speaks plain HTTP; production settings would 301 every request
    settings.SECURE_SSL_REDIRECT = False

    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.NOTIFICATION_BACKENDS = ["notifications.backends.LoggingBackend"]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    - test_views.py, test_services.py, test_tasks.py, test_webhooks.py,
      test_*_service.py → integration
    - test_models.py, test_policies.py, test_matching.py, test_money.py,
      test_providers.py, test_circuit_breaker.py → unit
    - Unmatched files → integration

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_webhooks.py",
        "_service.py",
        "test_reconciliation.py",
    ]
    unit_patterns = [
        "test_models.py",
        "test_policies.py",
        "test_matching.py",
        "test_money.py",
        "test_providers.py",
        "test_locks.py",
        "test_circuit_breaker.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]
        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _clear_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _reset_provider_adapters():
    from payments.providers import reset_adapters

    reset_adapters()
    yield
    reset_adapters()


@pytest.fixture
def mock_redis():
    """
    Redis double for DistributedLock.

    SET NX always succeeds and the release script reports the key deleted,
    so locked code paths run without a Redis server.
    """
    redis = MagicMock()
    redis.set.return_value = True
    redis.eval.return_value = 1
    with patch("payments.locks.get_redis_connection", return_value=redis):
        yield redis


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def authenticated_client():
    """
    Factory returning an APIClient authenticated as the given user.

    Usage:
        client = authenticated_client(seller.user)
    """

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client
