"""
Tests for notify() after-commit dispatch.
"""

from decimal import Decimal
import uuid

import pytest

from notifications.services import NotificationService, notify


@pytest.mark.django_db
class TestNotify:
    def test_enqueues_only_on_commit(self, mocker, django_capture_on_commit_callbacks):
        delay = mocker.patch("notifications.tasks.send_notification.delay")

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            notify("order.status_changed", {"order_id": "abc"})

        delay.assert_not_called()
        assert len(callbacks) == 1

        callbacks[0]()
        delay.assert_called_once_with("order.status_changed", {"order_id": "abc"})

    def test_payload_is_made_json_safe(self, mocker, django_capture_on_commit_callbacks):
        delay = mocker.patch("notifications.tasks.send_notification.delay")
        order_id = uuid.uuid4()

        with django_capture_on_commit_callbacks(execute=True):
            notify("escrow.released", {"order_id": order_id, "amount": Decimal("970.00")})

        _, payload = delay.call_args.args
        assert payload == {"order_id": str(order_id), "amount": "970.00"}

    def test_broker_failure_is_swallowed(self, mocker, django_capture_on_commit_callbacks):
        mocker.patch(
            "notifications.tasks.send_notification.delay",
            side_effect=ConnectionError("broker down"),
        )

        with django_capture_on_commit_callbacks(execute=True):
            NotificationService.notify("withdrawal.failed", {})
