"""
Balance ledger audit model.

Balances live as columns on the holder rows (Seller.balance, Event.balance,
Buyer.refunds, ...). Each change to one of those columns is mirrored by an
append-only BalanceEntry recording the amount, the resulting balance and
what caused it. The unique idempotency_key is what makes replayed credits
and debits no-ops.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import AppendOnlyMixin
from core.models import BaseModel


class EntryType(models.TextChoices):
    CREDIT = "credit", "Credit"
    DEBIT = "debit", "Debit"


class BalanceEntry(AppendOnlyMixin, BaseModel):
    """
    Immutable record of one balance mutation.

    Example:
        BalanceEntry(
            holder_type="seller",
            holder_id="42",
            field="balance",
            entry_type=EntryType.CREDIT,
            amount=Decimal("970.00"),
            balance_after=Decimal("970.00"),
            reason="escrow_release",
            reference_type="order",
            reference_id=str(order.id),
            idempotency_key=f"escrow:{order.id}",
        )
    """

    holder_type = models.CharField(
        max_length=20,
        help_text="seller, organizer, event or buyer",
    )
    holder_id = models.CharField(
        max_length=64,
        help_text="Primary key of the holder row",
    )
    field = models.CharField(
        max_length=30,
        default="balance",
        help_text="Balance column that changed",
    )
    entry_type = models.CharField(
        max_length=10,
        choices=EntryType.choices,
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount moved (always positive)",
    )
    balance_after = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Holder balance once this entry was applied",
    )
    reason = models.CharField(
        max_length=50,
        help_text="Why the balance changed (escrow_release, withdrawal, ...)",
    )
    reference_type = models.CharField(
        max_length=50,
        blank=True,
        help_text="Kind of entity that caused the change",
    )
    reference_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Identifier of the entity that caused the change",
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Replaying an operation with the same key is a no-op",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "Balance entries"
        indexes = [
            models.Index(fields=["holder_type", "holder_id"], name="payments_ba_holder__4e6c13_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="payments_ba_referen_8f0b5d_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="balance_entry_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.entry_type} {self.amount} {self.holder_type}:{self.holder_id}"
