"""
WithdrawalRequest model for payouts of seller, organizer and event balances.

A request is only ever created after its balance debit succeeded in the
same transaction, so it starts life in PROCESSING.

State Flow:
    PENDING -> PROCESSING -> COMPLETED
                          -> FAILED   (balance re-credited)
                          -> REJECTED (balance re-credited)

Usage:
    from payments.models import WithdrawalRequest

    withdrawal = WithdrawalRequest.objects.select_for_update().get(pk=pk)
    withdrawal.complete()
    withdrawal.save()
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from accounts.models import EntityType
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.money import event_fee_rate, gross_from_net, round2
from payments.state_machines import TERMINAL_WITHDRAWAL_STATUSES, WithdrawalStatus


def generate_withdrawal_reference() -> str:
    return f"WDR-{uuid.uuid4().hex[:16].upper()}"


class WithdrawalRequest(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Outbound payout to a mobile money number.

    amount is the net amount the payee receives. For event withdrawals the
    balance is charged the gross amount, amount / (1 - event fee rate);
    deducted_amount() re-derives it whenever a deduction has to be undone.
    """

    entity_type = models.CharField(
        max_length=20,
        choices=EntityType.choices,
        help_text="Kind of balance the money is drawn from",
    )
    seller = models.ForeignKey(
        "accounts.Seller",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="withdrawals",
    )
    organizer = models.ForeignKey(
        "accounts.Organizer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="withdrawals",
    )
    event = models.ForeignKey(
        "accounts.Event",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="withdrawals",
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="withdrawal_requests",
    )

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Net amount paid out",
    )
    payout_number = models.CharField(
        max_length=20,
        help_text="Normalised mobile number (0XXXXXXXXX)",
    )
    payout_name = models.CharField(max_length=150)

    status = FSMField(
        default=WithdrawalStatus.PENDING,
        choices=WithdrawalStatus.choices,
        db_index=True,
        protected=True,
    )
    reference = models.CharField(
        max_length=40,
        unique=True,
        default=generate_withdrawal_reference,
        editable=False,
        help_text="Internal idempotent reference sent to the payout provider",
    )
    provider_reference = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Provider correlator / transaction id",
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Admin who resolved the request manually",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_wi_status_6b1f02_idx"),
            models.Index(fields=["entity_type", "status"], name="payments_wi_entity__d27a95_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="withdrawal_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"WithdrawalRequest({self.reference}, {self.entity_type}, {self.amount}, {self.status})"

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_WITHDRAWAL_STATUSES

    @property
    def holder_id(self):
        return {
            EntityType.SELLER: self.seller_id,
            EntityType.ORGANIZER: self.organizer_id,
            EntityType.EVENT: self.event_id,
        }[self.entity_type]

    def deducted_amount(self):
        if self.entity_type == EntityType.EVENT:
            return gross_from_net(self.amount, event_fee_rate())
        return round2(self.amount)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalStatus.PENDING,
        target=WithdrawalStatus.PROCESSING,
    )
    def start_processing(self):
        pass

    @transition(
        field=status,
        source=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        target=WithdrawalStatus.COMPLETED,
    )
    def complete(self):
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        target=WithdrawalStatus.FAILED,
    )
    def fail(self, error: str | None = None):
        self.processed_at = timezone.now()
        if error:
            self.merge_meta(api_error=error)

    @transition(
        field=status,
        source=[WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING],
        target=WithdrawalStatus.REJECTED,
    )
    def reject(self, reason: str | None = None):
        self.processed_at = timezone.now()
        if reason:
            self.merge_meta(rejection_reason=reason)
