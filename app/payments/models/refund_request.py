"""
RefundRequest model: a buyer asking to cash out their refunds balance.

Unlike withdrawals, nothing is debited at request time; the refunds
balance is debited when an admin confirms.

State Flow:
    PENDING -> COMPLETED (balance debited)
    PENDING -> REJECTED  (balance untouched)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import RefundRequestStatus


class RefundRequest(UUIDPrimaryKeyMixin, BaseModel):
    buyer = models.ForeignKey(
        "accounts.Buyer",
        on_delete=models.PROTECT,
        related_name="refund_requests",
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
    )
    payout_number = models.CharField(max_length=20)
    payout_name = models.CharField(max_length=150)
    status = FSMField(
        default=RefundRequestStatus.PENDING,
        choices=RefundRequestStatus.choices,
        db_index=True,
        protected=True,
    )
    admin_notes = models.TextField(blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="refund_request_amount_positive",
            ),
            models.UniqueConstraint(
                fields=["buyer"],
                condition=models.Q(status=RefundRequestStatus.PENDING),
                name="one_pending_refund_request_per_buyer",
            ),
        ]

    def __str__(self) -> str:
        return f"RefundRequest({self.buyer_id}, {self.amount}, {self.status})"

    def _stamp(self, admin, notes: str) -> None:
        self.processed_by = admin
        self.processed_at = timezone.now()
        if notes:
            self.admin_notes = notes

    @transition(
        field=status,
        source=RefundRequestStatus.PENDING,
        target=RefundRequestStatus.COMPLETED,
    )
    def complete(self, admin, notes: str = ""):
        self._stamp(admin, notes)

    @transition(
        field=status,
        source=RefundRequestStatus.PENDING,
        target=RefundRequestStatus.REJECTED,
    )
    def reject(self, admin, notes: str = ""):
        self._stamp(admin, notes)
