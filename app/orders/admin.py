"""
Django admin configuration for orders.

Status is FSM-protected; admins change it through the status endpoint so
history rows and escrow stay in step. History rows are read-only.
"""

from django.contrib import admin

from orders.models import Order, OrderStatusHistory


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    can_delete = False
    fields = ("created_at", "previous_status", "status", "created_by_type", "created_by", "notes")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "buyer",
        "seller",
        "event",
        "status",
        "payment_status",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "payment_status", "provider")
    search_fields = ("order_number", "provider_reference", "buyer__user__email")
    readonly_fields = (
        "id",
        "order_number",
        "status",
        "payment_status",
        "total_amount",
        "platform_fee_amount",
        "seller_payout_amount",
        "version",
        "created_at",
        "updated_at",
        "paid_at",
        "completed_at",
        "cancelled_at",
        "dropoff_deadline",
        "pickup_deadline",
        "auto_cancel_reason",
    )
    raw_id_fields = ("buyer", "seller", "event")
    date_hierarchy = "created_at"
    inlines = [OrderStatusHistoryInline]
