"""
Notification delivery backends.

A backend receives (event, payload) and delivers it somewhere. Backends
are listed as dotted paths in settings.NOTIFICATION_BACKENDS and loaded
with import_string.

Backends raise DeliveryError: permanent errors are logged and dropped,
anything else is retried by the send_notification task.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.mail import send_mail
from django.utils.module_loading import import_string

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Delivery failure, classified for retry logic."""

    def __init__(self, message: str, code: str, is_permanent: bool = False):
        super().__init__(message)
        self.code = code
        self.is_permanent = is_permanent


class BaseBackend:
    name = "base"

    def send(self, event: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingBackend(BaseBackend):
    """Writes every event to the notifications log."""

    name = "log"

    def send(self, event: str, payload: dict[str, Any]) -> None:
        logger.info(f"Notification {event}", extra={"event": event, "payload": payload})


class EmailBackend(BaseBackend):
    """
    Sends a plain-text email when the payload carries an "email" key.

    Events without a recipient address are skipped silently.
    """

    name = "email"

    def send(self, event: str, payload: dict[str, Any]) -> None:
        recipient = payload.get("email")
        if not recipient:
            return

        subject = payload.get("subject") or event.replace(".", " ").replace("_", " ").capitalize()
        lines = [f"{key}: {value}" for key, value in sorted(payload.items()) if key not in ("email", "subject")]
        try:
            send_mail(
                subject=subject,
                message="\n".join(lines),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient],
            )
        except (ConnectionError, TimeoutError) as e:
            raise DeliveryError(str(e), code="connection_error") from e
        except ValueError as e:
            raise DeliveryError(str(e), code="invalid_email", is_permanent=True) from e


def get_backends() -> list[BaseBackend]:
    paths = getattr(settings, "NOTIFICATION_BACKENDS", None) or [
        "notifications.backends.LoggingBackend",
    ]
    return [import_string(path)() for path in paths]
