"""
Payment model: one checkout attempt against a payment provider.

The Payment row is the secondary index for provider-issued identifiers.
Webhooks and redirect callbacks carry whichever of invoice_id,
provider_reference or api_ref the provider chose to send; the matchers in
payments.matching look them up here and on the Order.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentProvider, PaymentStatus


class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Checkout attempt for an order.

    Fields:
        provider: payd, pesapal or intasend
        invoice_id: Provider invoice / merchant reference, when issued
        provider_reference: Provider's primary id (checkout_id,
            OrderTrackingId, collection_id)
        api_ref: Merchant reference sent to the provider (ORD-<order uuid>)
        status: Canonical status as last observed
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
    )
    invoice_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
    )
    provider_reference = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
    )
    api_ref = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
    )
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_pa_status_3f8a21_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment({self.provider}, {self.provider_reference or self.api_ref}, {self.status})"
