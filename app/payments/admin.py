"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule
and registers payment domain models with the Django admin.

Status fields are FSM-protected and read-only here; withdrawals are
resolved through the override endpoint so balances stay consistent.
"""

from django.contrib import admin

from payments.ledger.admin import BalanceEntryAdmin
from payments.models import Payment, RefundRequest, WebhookEvent, WithdrawalRequest

__all__ = [
    "BalanceEntryAdmin",
    "PaymentAdmin",
    "RefundRequestAdmin",
    "WebhookEventAdmin",
    "WithdrawalRequestAdmin",
]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "order",
        "provider",
        "amount",
        "status",
        "created_at",
    ]
    list_filter = ["provider", "status"]
    search_fields = ["id", "provider_reference", "invoice_id", "api_ref", "order__order_number"]
    readonly_fields = ["id", "created_at", "updated_at"]
    raw_id_fields = ["order"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    """
    Admin configuration for WithdrawalRequest.

    Provides visibility into payouts and their reconciliation flags.
    """

    list_display = [
        "reference",
        "entity_type",
        "amount",
        "status",
        "provider_reference",
        "created_at",
    ]
    list_filter = ["status", "entity_type", "created_at"]
    search_fields = ["reference", "provider_reference", "payout_number", "payout_name"]
    readonly_fields = [
        "id",
        "reference",
        "status",
        "amount",
        "entity_type",
        "created_at",
        "updated_at",
        "processed_at",
        "processed_by",
    ]
    raw_id_fields = ["seller", "organizer", "event", "requested_by"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "reference", "entity_type", "status"),
            },
        ),
        (
            "Payee",
            {
                "fields": ("seller", "organizer", "event", "requested_by", "payout_number", "payout_name"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount", "provider_reference"),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at", "processed_at", "processed_by"),
            },
        ),
    )


@admin.register(RefundRequest)
class RefundRequestAdmin(admin.ModelAdmin):
    list_display = ["id", "buyer", "amount", "status", "created_at", "processed_at"]
    list_filter = ["status"]
    search_fields = ["id", "payout_number", "buyer__user__email"]
    readonly_fields = ["id", "status", "amount", "created_at", "updated_at", "processed_at", "processed_by"]
    raw_id_fields = ["buyer"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Read-only: events are evidence of what providers sent.
    """

    list_display = ["id", "provider", "status", "outcome", "created_at", "processed_at"]
    list_filter = ["provider", "status", "outcome"]
    search_fields = ["id", "event_key", "error_message"]
    readonly_fields = [
        "id",
        "provider",
        "event_key",
        "payload",
        "headers",
        "status",
        "outcome",
        "error_message",
        "created_at",
        "updated_at",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False
