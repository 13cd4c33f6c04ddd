"""
Webhook and callback handling for payment providers.

Webhooks are verified by the provider adapter, stored idempotently as
WebhookEvent rows and applied synchronously through PaymentReconciler.

Usage:
    # In urls.py
    from payments.webhooks.views import payment_webhook

    urlpatterns = [
        path("webhooks/<str:provider>/", payment_webhook, name="payment-webhook"),
    ]
"""

from payments.webhooks.handlers import (
    WebhookResponse,
    handle_payment_webhook,
    handle_payout_callback,
    handle_redirect_callback,
)

__all__ = [
    "WebhookResponse",
    "handle_payment_webhook",
    "handle_payout_callback",
    "handle_redirect_callback",
]
