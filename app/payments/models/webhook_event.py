"""
WebhookEvent model for inbound provider notifications.

Every verified webhook is stored before it is processed. The event_key is
the SHA-256 of the raw body, unique per provider, so a provider retrying
the same notification is detected before any order is touched.

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        provider="intasend",
        event_key=WebhookEvent.key_for(request.body),
        defaults={"payload": payload},
    )
    if not created and event.is_processed:
        return JsonResponse({"status": "already_processed"})
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.helpers import hash_bytes
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentProvider, WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Durable record of one inbound webhook.

    Fields:
        provider: Provider that sent the webhook
        event_key: SHA-256 hex of the raw request body
        payload: Decoded JSON body
        headers: Subset of request headers kept for debugging
        status: pending, processed, ignored or failed
        outcome: Reconciliation outcome (processed, not_found, ...)
        error_message: Failure details when processing raised
    """

    provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
    )
    event_key = models.CharField(
        max_length=64,
        help_text="SHA-256 of the raw body",
    )
    payload = models.JSONField(default=dict)
    headers = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    outcome = models.CharField(max_length=30, blank=True)
    error_message = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_we_status_9c4d7e_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "event_key"],
                name="webhook_event_unique_per_provider",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider}, {self.event_key[:12]}, {self.status})"

    @staticmethod
    def key_for(raw_body: bytes) -> str:
        return hash_bytes(raw_body)

    @property
    def is_processed(self) -> bool:
        return self.status in (WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED)

    def mark(self, status: str, outcome: str = "", error: str = "") -> None:
        """Record the processing result and save."""
        self.status = status
        self.outcome = outcome
        self.error_message = error
        self.processed_at = timezone.now()
        self.save(update_fields=["status", "outcome", "error_message", "processed_at", "updated_at"])
