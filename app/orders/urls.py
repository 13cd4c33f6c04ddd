"""
URL configuration for the orders API.

Routes:
    /                         - Place an order (POST)
    /{id}/                    - Order detail (GET)
    /{id}/status/             - Status change (PATCH)
    /{id}/confirm-receipt/    - Buyer confirmation (POST)
    /{id}/cancel/             - Cancellation (POST)
"""

from django.urls import path

from orders.views import (
    OrderCancelView,
    OrderConfirmReceiptView,
    OrderCreateView,
    OrderDetailView,
    OrderStatusUpdateView,
)

app_name = "orders"

urlpatterns = [
    path("", OrderCreateView.as_view(), name="order-create"),
    path("<uuid:pk>/", OrderDetailView.as_view(), name="order-detail"),
    path("<uuid:pk>/status/", OrderStatusUpdateView.as_view(), name="order-status"),
    path("<uuid:pk>/confirm-receipt/", OrderConfirmReceiptView.as_view(), name="order-confirm-receipt"),
    path("<uuid:pk>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
]
