"""
Admin for the balance ledger.

Entries are append-only: no add, change or delete through the admin.
Corrections are made with a compensating entry through LedgerService.
"""

from django.contrib import admin

from .models import BalanceEntry


@admin.register(BalanceEntry)
class BalanceEntryAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "holder_type",
        "holder_id",
        "entry_type",
        "amount",
        "balance_after",
        "reason",
        "reference_type",
        "reference_id",
    ]
    list_filter = ["holder_type", "entry_type", "reason"]
    search_fields = ["holder_id", "reference_id", "idempotency_key"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
