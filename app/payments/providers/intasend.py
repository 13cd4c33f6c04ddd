"""
IntaSend checkout adapter.

Webhooks are signed: the HMAC-SHA256 hex digest of the raw body, keyed
with INTASEND_WEBHOOK_SECRET, arrives in X-IntaSend-Signature (older
integrations send X-Signature). Without a configured secret every webhook
is rejected.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import TYPE_CHECKING, Any

from django.conf import settings

from payments.exceptions import ProviderRejectedError
from payments.money import round2
from payments.state_machines import PaymentProvider

from .base import CallbackIdentifiers, InitiationResult, ProviderAdapter, pick

if TYPE_CHECKING:
    from collections.abc import Mapping

    from orders.models import Order

    from .base import InboundRequest, InitiationRequest, StatusResult

SIGNATURE_HEADERS = ("X-IntaSend-Signature", "X-Signature")


def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class IntaSendAdapter(ProviderAdapter):
    """IntaSend hosted checkout and payment status API."""

    name = PaymentProvider.INTASEND

    @property
    def base_url(self) -> str:
        return settings.INTASEND_BASE_URL.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {settings.INTASEND_SECRET_KEY}",
            "Accept": "application/json",
        }

    def initiate(self, request: InitiationRequest) -> InitiationResult:
        customer = request.customer
        payload = {
            "public_key": settings.INTASEND_PUBLISHABLE_KEY,
            "amount": float(round2(request.amount)),
            "currency": request.currency,
            "email": customer.email,
            "phone_number": customer.phone_number,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "api_ref": request.api_ref,
            "comment": request.description,
            "redirect_url": request.callback_url or settings.INTASEND_REDIRECT_URL,
        }
        data = self._request(
            "POST",
            f"{self.base_url}/api/v1/checkout/",
            operation="initiate",
            json=payload,
            headers=self._headers(),
        )

        checkout_url = pick(data, "url", "checkout_url", "payment_url")
        checkout_id = pick(data, "id", "checkout_id")
        if not checkout_url or not checkout_id:
            raise ProviderRejectedError(
                self._error_message(data) or "IntaSend did not return a checkout",
                provider=self.name,
                raw_response=data,
            )

        invoice = data.get("invoice") if isinstance(data.get("invoice"), dict) else {}
        return InitiationResult(
            checkout_url=checkout_url,
            provider_reference=checkout_id,
            invoice_id=pick(data, "invoice_id") or pick(invoice, "invoice_id"),
            api_ref=pick(data, "api_ref") or request.api_ref,
            raw_response=data,
        )

    def check_status(self, reference: str) -> StatusResult:
        data = self._request(
            "POST",
            f"{self.base_url}/api/v1/payment/status/",
            operation="check_status",
            json={"invoice_id": reference},
            headers=self._headers(),
        )
        invoice = data.get("invoice") if isinstance(data.get("invoice"), dict) else data
        raw_status = pick(invoice, "state", "status") or None
        return self._status_result(raw_status, reference, data)

    def status_reference(self, order: Order) -> str:
        return order.get_meta("invoice_id", "") or super().status_reference(order)

    def verify_signature(self, inbound: InboundRequest) -> bool:
        secret = getattr(settings, "INTASEND_WEBHOOK_SECRET", "")
        if not secret:
            self.get_logger().error("INTASEND_WEBHOOK_SECRET not configured, rejecting webhook")
            return False

        received = ""
        for header in SIGNATURE_HEADERS:
            received = inbound.header(header)
            if received:
                break
        if not received:
            return False
        return hmac.compare_digest(sign(inbound.body, secret), received.strip().lower())

    def extract_webhook(self, payload: Mapping[str, Any]) -> CallbackIdentifiers:
        return CallbackIdentifiers(
            primary_id=pick(payload, "checkout_id", "collection_id"),
            order_number=pick(payload, "order_number"),
            provider_reference=pick(payload, "tracking_id", "reference"),
            invoice_id=pick(payload, "invoice_id"),
            api_ref=pick(payload, "api_ref"),
            raw_status=pick(payload, "state", "status") or None,
        )

    def extract_callback(self, query: Mapping[str, Any]) -> CallbackIdentifiers:
        return CallbackIdentifiers(
            primary_id=pick(query, "checkout_id", "collection_id"),
            provider_reference=pick(query, "tracking_id", "reference"),
            invoice_id=pick(query, "invoice_id"),
            api_ref=pick(query, "api_ref"),
        )
