"""
Celery tasks for notification delivery.

Tasks:
    send_notification: Fan an event out to every configured backend

Design:
    - Permanent backend errors are logged and dropped
    - Transient errors are retried with exponential backoff
    - One failing backend does not stop the others
"""

from __future__ import annotations

import logging

from celery import shared_task

from notifications.backends import DeliveryError, get_backends

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(DeliveryError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def send_notification(self, event: str, payload: dict) -> int:
    """
    Deliver a notification event.

    Args:
        event: Event name (see notifications.events)
        payload: JSON-serialisable event data

    Returns:
        Number of backends that delivered the event

    Raises:
        DeliveryError: A backend failed transiently (triggers retry)
    """
    delivered = 0
    transient: DeliveryError | None = None

    for backend in get_backends():
        try:
            backend.send(event, payload)
            delivered += 1
        except DeliveryError as e:
            if e.is_permanent:
                logger.warning(
                    f"Notification {event} permanently failed on {backend.name}: {e.code} - {e}",
                    extra={"event": event, "backend": backend.name},
                )
            else:
                logger.warning(
                    f"Notification {event} transiently failed on {backend.name}: {e.code} - {e}, will retry",
                    extra={"event": event, "backend": backend.name},
                )
                transient = e
        except Exception as e:
            logger.exception(f"Unexpected error delivering {event} on {backend.name}: {e}")

    if transient is not None:
        raise transient
    return delivered
