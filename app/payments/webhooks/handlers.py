"""
Inbound payment notification handling.

Three entry points, one per transport:

- handle_payment_webhook: signed (or IP-allowlisted) provider webhooks
- handle_redirect_callback: unsigned browser redirects after checkout
- handle_payout_callback: payout provider results for withdrawals

Webhook Processing Order:
1. Verify via the adapter, before any database access
2. Record a WebhookEvent keyed by the SHA-256 of the raw body
3. Extract identifiers and match the order
4. Take the status from the payload, or poll the provider when the
   adapter does not trust payload status
5. Apply through PaymentReconciler (row lock, idempotent)

Handlers return a WebhookResponse so that views stay thin and the logic
can be tested without HTTP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from django.conf import settings

from core.exceptions import BaseApplicationError, NotFoundError
from orders.models import Order
from payments.matching import match_order
from payments.models import WebhookEvent
from payments.providers import get_adapter
from payments.reconciliation import PaymentReconciler, ReconcileOutcome
from payments.state_machines import PaymentStatus, WebhookEventStatus

if TYPE_CHECKING:
    from payments.providers import CallbackIdentifiers, InboundRequest, ProviderAdapter

logger = logging.getLogger(__name__)

KEPT_HEADERS = ("content-type", "user-agent", "x-forwarded-for", "x-request-id")

FAILED_PAYMENT_STATUSES = (PaymentStatus.FAILED, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED)


@dataclass
class WebhookResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def error(cls, status_code: int, message: str) -> WebhookResponse:
        return cls(status_code, {"status": "error", "message": message})


def _header_subset(inbound: InboundRequest) -> dict[str, str]:
    return {name: inbound.header(name) for name in KEPT_HEADERS if inbound.header(name)}


def _polled_status(adapter: ProviderAdapter, order_id, identifiers: CallbackIdentifiers):
    order = Order.objects.get(pk=order_id)
    reference = adapter.status_reference(order) or identifiers.primary_id
    return adapter.check_status(reference)


# =============================================================================
# Payment webhooks
# =============================================================================


def handle_payment_webhook(provider: str, inbound: InboundRequest) -> WebhookResponse:
    """
    Process one provider webhook.

    Returns:
        200 processed/ignored/already_processed, 400 bad signature, body or
        reference, 404 unknown provider or order, 500 internal error
    """
    try:
        adapter = get_adapter(provider)
    except NotFoundError:
        return WebhookResponse.error(404, "Unknown provider")

    log_context = {"provider": adapter.name, "remote_addr": inbound.remote_addr}

    if not adapter.verify_signature(inbound):
        logger.warning("Webhook verification failed", extra=log_context)
        return WebhookResponse.error(400, "Invalid signature")

    try:
        payload = inbound.json()
    except ValueError:
        logger.warning("Webhook body is not a JSON object", extra=log_context)
        return WebhookResponse.error(400, "Invalid payload")

    event, created = WebhookEvent.objects.get_or_create(
        provider=adapter.name,
        event_key=WebhookEvent.key_for(inbound.body),
        defaults={"payload": payload, "headers": _header_subset(inbound)},
    )
    log_context["webhook_event_id"] = str(event.pk)

    if not created and event.is_processed:
        logger.info("Webhook already processed", extra=log_context)
        return WebhookResponse(200, {"status": ReconcileOutcome.ALREADY_PROCESSED.value})

    identifiers = adapter.extract_webhook(payload)
    if not identifiers.has_reference:
        event.mark(WebhookEventStatus.FAILED, error="Missing reference")
        logger.warning("Webhook without any order reference", extra=log_context)
        return WebhookResponse.error(400, "Missing reference")

    order_id, matcher = match_order(identifiers, adapter.name)
    if order_id is None:
        event.mark(WebhookEventStatus.FAILED, outcome=ReconcileOutcome.NOT_FOUND.value, error="No matching order")
        logger.error(
            "Webhook for unknown order, needs manual reconciliation",
            extra={**log_context, "identifiers": identifiers.as_dict()},
        )
        return WebhookResponse.error(404, "Order not found")

    log_context.update(order_id=str(order_id), matcher=matcher)

    try:
        if adapter.trusts_webhook_status and identifiers.raw_status is not None:
            raw_status, raw = identifiers.raw_status, payload
        else:
            polled = _polled_status(adapter, order_id, identifiers)
            raw_status, raw = polled.raw_status, {"webhook": payload, "status_check": polled.raw}

        outcome = PaymentReconciler.apply(order_id, raw_status, provider=adapter.name, raw=raw)
    except BaseApplicationError as e:
        event.mark(WebhookEventStatus.FAILED, error=str(e))
        logger.error(f"Webhook processing failed: {e}", extra=log_context)
        return WebhookResponse.error(500, "Processing failed")
    except Exception as e:
        event.mark(WebhookEventStatus.FAILED, error=f"{type(e).__name__}: {e}")
        logger.exception("Unexpected error processing webhook", extra=log_context)
        return WebhookResponse.error(500, "Internal error")

    if outcome == ReconcileOutcome.NOT_FOUND:
        event.mark(WebhookEventStatus.FAILED, outcome=outcome.value, error="Order disappeared")
        return WebhookResponse.error(404, "Order not found")

    event.mark(
        WebhookEventStatus.PROCESSED if outcome == ReconcileOutcome.PROCESSED else WebhookEventStatus.IGNORED,
        outcome=outcome.value,
    )
    logger.info(f"Webhook {outcome.value}", extra={**log_context, "outcome": outcome.value})

    body = {"status": outcome.value, "outcome": outcome.value}
    body.update(adapter.webhook_ack(identifiers))
    return WebhookResponse(200, body)


# =============================================================================
# Redirect callbacks
# =============================================================================


def checkout_redirect_url(status: str, reference: str = "") -> str:
    query = urlencode({"status": status, "reference": reference})
    return f"{settings.FRONTEND_URL.rstrip('/')}/checkout?{query}"


def handle_redirect_callback(provider: str, query: dict[str, Any]) -> str:
    """
    Resolve a browser redirect into a frontend URL.

    The query string is unsigned, so its status is never used: the
    provider is always polled. Failures surface only as status=error.
    """
    reference = ""
    try:
        adapter = get_adapter(provider)
        identifiers = adapter.extract_callback(query)
        reference = identifiers.display_reference
        if not identifiers.has_reference:
            logger.warning("Redirect callback without reference", extra={"provider": provider})
            return checkout_redirect_url("error", reference)

        order_id, _ = match_order(identifiers, adapter.name)
        if order_id is None:
            logger.warning(
                "Redirect callback for unknown order",
                extra={"provider": provider, "identifiers": identifiers.as_dict()},
            )
            return checkout_redirect_url("error", reference)

        polled = _polled_status(adapter, order_id, identifiers)
        PaymentReconciler.apply(order_id, polled.canonical, provider=adapter.name, raw=polled.raw)

        order = Order.objects.get(pk=order_id)
        reference = order.order_number
        if order.payment_status == PaymentStatus.COMPLETED:
            status = "success"
        elif order.payment_status in FAILED_PAYMENT_STATUSES:
            status = "error"
        else:
            status = "pending"
    except Exception:
        logger.exception("Redirect callback failed", extra={"provider": provider, "reference": reference})
        status = "error"

    return checkout_redirect_url(status, reference)


# =============================================================================
# Payout callbacks
# =============================================================================


def handle_payout_callback(inbound: InboundRequest) -> WebhookResponse:
    """Process a payout provider callback for a withdrawal."""
    from payments.services import WithdrawalService

    adapter = WithdrawalService.get_payout_adapter()
    if not adapter.verify_signature(inbound):
        logger.warning("Payout callback verification failed", extra={"remote_addr": inbound.remote_addr})
        return WebhookResponse.error(400, "Invalid signature")

    try:
        payload = inbound.json()
    except ValueError:
        return WebhookResponse.error(400, "Invalid payload")
    if not isinstance(payload, dict):
        return WebhookResponse.error(400, "Invalid payload")

    result = WithdrawalService.handle_payout_callback(payload)
    if not result.success:
        return WebhookResponse(
            result.status_code,
            {"status": "error", "message": result.error, "error_code": result.error_code},
        )
    return WebhookResponse(200, {"status": result.data.value})
