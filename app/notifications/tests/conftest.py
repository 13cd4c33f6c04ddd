"""
Fixtures for notification tests.
"""

import pytest

from notifications.backends import BaseBackend, DeliveryError


class RecordingBackend(BaseBackend):
    name = "recording"
    sent: list = []

    def send(self, event, payload):
        RecordingBackend.sent.append((event, payload))


class FlakyBackend(BaseBackend):
    name = "flaky"

    def send(self, event, payload):
        raise DeliveryError("provider down", code="provider_unavailable")


class BrokenBackend(BaseBackend):
    name = "broken"

    def send(self, event, payload):
        raise DeliveryError("bad address", code="invalid_email", is_permanent=True)


@pytest.fixture
def recording_backend(settings):
    RecordingBackend.sent = []
    settings.NOTIFICATION_BACKENDS = ["notifications.tests.conftest.RecordingBackend"]
    return RecordingBackend
