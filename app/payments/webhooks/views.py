"""
Webhook and callback endpoints for payment providers.

Plain Django views: providers post raw bodies that must be verified
byte-for-byte, so DRF parsing and authentication stay out of the way.

Usage:
    # In urls.py
    from payments.webhooks.views import payment_webhook

    urlpatterns = [
        path("webhooks/<str:provider>/", payment_webhook, name="payment-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse, HttpResponseRedirect, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.helpers import get_client_ip
from payments.providers import InboundRequest
from payments.webhooks.handlers import (
    handle_payment_webhook,
    handle_payout_callback,
    handle_redirect_callback,
)

logger = logging.getLogger(__name__)


def _inbound(request: HttpRequest) -> InboundRequest:
    remote_addr = get_client_ip(request, trust_forwarded=settings.WEBHOOK_TRUST_FORWARDED_FOR)
    return InboundRequest.from_django(request, remote_addr=remote_addr)


@csrf_exempt
@require_POST
def payment_webhook(request: HttpRequest, provider: str) -> HttpResponse:
    """
    Receive a payment status webhook.

    Always answers 2xx once the event is recorded and applied or found
    irrelevant, so providers stop retrying.
    """
    response = handle_payment_webhook(provider, _inbound(request))
    return JsonResponse(response.body, status=response.status_code)


@require_GET
def payment_callback(request: HttpRequest, provider: str) -> HttpResponse:
    """Browser redirect after checkout; sends the payer on to the frontend."""
    return HttpResponseRedirect(handle_redirect_callback(provider, request.GET.dict()))


@csrf_exempt
@require_POST
def payout_callback(request: HttpRequest) -> HttpResponse:
    """Payout result for a withdrawal."""
    response = handle_payout_callback(_inbound(request))
    return JsonResponse(response.body, status=response.status_code)
