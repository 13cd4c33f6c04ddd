"""
Django admin configuration for balance holders.

Balances are read-only here: they change only through the ledger.
"""

from django.contrib import admin

from accounts.models import Buyer, Event, Organizer, Seller


@admin.register(Seller)
class SellerAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "shop_name", "balance", "total_sales", "created_at")
    search_fields = ("full_name", "shop_name", "user__email")
    readonly_fields = ("balance", "total_sales", "net_revenue", "created_at", "updated_at")
    raw_id_fields = ("user",)


@admin.register(Organizer)
class OrganizerAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "balance", "created_at")
    search_fields = ("full_name", "user__email")
    readonly_fields = ("balance", "created_at", "updated_at")
    raw_id_fields = ("user",)


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "organizer", "balance", "starts_at")
    search_fields = ("name", "organizer__full_name")
    readonly_fields = ("balance", "created_at", "updated_at")
    raw_id_fields = ("organizer",)


@admin.register(Buyer)
class BuyerAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "refunds", "created_at")
    search_fields = ("full_name", "user__email")
    readonly_fields = ("refunds", "created_at", "updated_at")
    raw_id_fields = ("user",)
