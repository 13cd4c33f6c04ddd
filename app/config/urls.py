"""
Root URL configuration.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check (database, cache, provider circuits)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/orders/                - Orders
        {id}/                      - Order detail
        {id}/status/               - Status change
        {id}/confirm-receipt/      - Buyer confirms delivery
        {id}/cancel/               - Cancel order
    /api/v1/payments/              - Payments
        webhooks/{provider}/       - Provider payment webhooks (POST)
        callbacks/{provider}/      - Checkout redirect (GET)
        callbacks/payd/payout/     - Payout results (POST)
        withdrawals/               - Withdrawal requests
        refund-requests/           - Refund payout requests
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# All routes here are prefixed with /api/v1/
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("orders/", include("orders.urls")),
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Marketplace Admin"
admin.site.site_title = "Marketplace Admin"
admin.site.index_title = "Orders, payments and payouts"
