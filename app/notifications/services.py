"""
Notification dispatch.

notify() is the only entry point other apps use. It never sends anything
itself: it registers a transaction.on_commit hook that enqueues the
send_notification Celery task, so a rolled-back transaction produces no
notification and a slow backend never holds a row lock.

Usage:
    from notifications.services import notify

    with transaction.atomic():
        ...
        notify("order.status_changed", {"order_id": str(order.id)})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from core.services import BaseService

if TYPE_CHECKING:
    from typing import Any


class NotificationService(BaseService):
    """After-commit enqueueing of notification events."""

    @classmethod
    def notify(cls, event: str, payload: dict[str, Any] | None = None) -> None:
        """
        Schedule delivery of event once the current transaction commits.

        Outside a transaction the task is enqueued immediately. Broker
        failures are logged and swallowed.
        """
        clean_payload = cls._jsonable(payload or {})
        transaction.on_commit(lambda: cls._enqueue(str(event), clean_payload))

    @classmethod
    def _enqueue(cls, event: str, payload: dict[str, Any]) -> None:
        from notifications.tasks import send_notification

        try:
            send_notification.delay(event, payload)
        except Exception as e:
            cls.get_logger().error(
                f"Failed to enqueue notification {event}: {e}",
                extra={"event": event},
                exc_info=True,
            )

    @staticmethod
    def _jsonable(payload: dict[str, Any]) -> dict[str, Any]:
        """Convert Decimals, UUIDs and datetimes to strings for the broker."""
        encoder = DjangoJSONEncoder()
        result = {}
        for key, value in payload.items():
            if value is None or isinstance(value, (str, int, float, bool, list, dict)):
                result[key] = value
            else:
                result[key] = encoder.default(value)
        return result


notify = NotificationService.notify
