"""
URL configuration for the payments app.

Routes:
    - POST /webhooks/{provider}/ - Provider payment webhooks
    - GET  /callbacks/{provider}/ - Browser redirect after checkout
    - POST /callbacks/payd/payout/ - Payd payout results
    - POST /withdrawals/ - Request a withdrawal
    - PATCH /withdrawals/{id}/ - Admin override
    - POST /refund-requests/ - Request a refund payout
    - POST /refund-requests/{id}/confirm/ - Admin confirm
    - POST /refund-requests/{id}/reject/ - Admin reject

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments.views import (
    RefundRequestCreateView,
    RefundRequestDecisionView,
    WithdrawalCreateView,
    WithdrawalOverrideView,
)
from payments.webhooks.views import payment_callback, payment_webhook, payout_callback

app_name = "payments"

urlpatterns = [
    # Provider endpoints
    path("webhooks/<str:provider>/", payment_webhook, name="payment-webhook"),
    path("callbacks/payd/payout/", payout_callback, name="payout-callback"),
    path("callbacks/<str:provider>/", payment_callback, name="payment-callback"),
    # Withdrawals
    path("withdrawals/", WithdrawalCreateView.as_view(), name="withdrawal-create"),
    path("withdrawals/<uuid:pk>/", WithdrawalOverrideView.as_view(), name="withdrawal-override"),
    # Refund requests
    path("refund-requests/", RefundRequestCreateView.as_view(), name="refund-request-create"),
    path(
        "refund-requests/<uuid:pk>/confirm/",
        RefundRequestDecisionView.as_view(decision="confirm"),
        name="refund-request-confirm",
    ),
    path(
        "refund-requests/<uuid:pk>/reject/",
        RefundRequestDecisionView.as_view(decision="reject"),
        name="refund-request-reject",
    ),
]
