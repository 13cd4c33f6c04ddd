"""
Payd adapter: M-Pesa collections and payouts.

Payd authenticates with HTTP Basic auth and does not sign webhooks, so
inbound requests are accepted only from PAYD_ALLOWED_IPS. Entries may use
"x" or "*" for a whole octet (e.g. "41.90.x.x"). An empty allowlist
rejects everything unless DEBUG is on.

Payouts go to a separate v2 API; the provider answers with a correlator_id
that the payout callback echoes back.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from django.conf import settings

from payments.exceptions import ProviderRejectedError
from payments.money import round2
from payments.state_machines import PaymentProvider

from .base import (
    CallbackIdentifiers,
    InitiationResult,
    PayoutResult,
    ProviderAdapter,
    pick,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .base import InboundRequest, InitiationRequest, PayoutRequest, StatusResult

IPV4_MAPPED_PREFIX = "::ffff:"


def ip_allowed(client_ip: str, allowed: Iterable[str]) -> bool:
    """
    Whether client_ip matches an allowlist entry.

    Matches exact addresses, IPv4-mapped IPv6 forms of an allowed address
    and octet wildcards.
    """
    if not client_ip:
        return False

    candidates = {client_ip}
    if client_ip.startswith(IPV4_MAPPED_PREFIX):
        candidates.add(client_ip[len(IPV4_MAPPED_PREFIX):])

    for entry in allowed:
        entry = entry.strip()
        if not entry:
            continue
        if entry in candidates:
            return True
        if "x" in entry or "*" in entry:
            pattern = re.escape(entry).replace("x", r"\d+").replace(r"\*", r"\d+")
            if any(re.fullmatch(pattern, ip) for ip in candidates):
                return True
    return False


class PaydAdapter(ProviderAdapter):
    """Payd collections (v3) and payouts (v2)."""

    name = PaymentProvider.PAYD

    @property
    def base_url(self) -> str:
        return settings.PAYD_BASE_URL.rstrip("/")

    @property
    def payout_base_url(self) -> str:
        return settings.PAYD_PAYOUT_BASE_URL.rstrip("/")

    @property
    def auth(self) -> tuple[str, str]:
        return (settings.PAYD_USERNAME, settings.PAYD_PASSWORD)

    def _callback_url(self, path: str) -> str:
        return f"{settings.BACKEND_URL.rstrip('/')}{path}"

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def initiate(self, request: InitiationRequest) -> InitiationResult:
        payload = {
            "username": settings.PAYD_USERNAME,
            "channel": "MPESA",
            "amount": float(round2(request.amount)),
            "currency": request.currency,
            "phone_number": request.customer.phone_number,
            "narration": request.description or request.api_ref,
            "reference": request.api_ref,
            "callback_url": request.callback_url or self._callback_url("/api/v1/payments/webhooks/payd/"),
        }
        data = self._request(
            "POST",
            f"{self.base_url}/payments",
            operation="initiate",
            json=payload,
            auth=self.auth,
        )
        if data.get("success") is False:
            raise ProviderRejectedError(
                self._error_message(data) or "Payd rejected the payment request",
                provider=self.name,
                raw_response=data,
            )

        return InitiationResult(
            checkout_url=pick(data, "checkout_url", "payment_url"),
            provider_reference=pick(data, "transaction_reference", "correlator_id", "reference"),
            invoice_id=pick(data, "invoice_id"),
            api_ref=request.api_ref,
            raw_response=data,
        )

    def check_status(self, reference: str) -> StatusResult:
        data = self._request(
            "GET",
            f"{self.base_url}/payments/{reference}",
            operation="check_status",
            auth=self.auth,
        )
        body = data.get("data") if isinstance(data.get("data"), dict) else data
        raw_status = pick(body, "status", "transaction_status", "result_code") or None
        return self._status_result(raw_status, reference, data)

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def verify_signature(self, inbound: InboundRequest) -> bool:
        allowed = list(getattr(settings, "PAYD_ALLOWED_IPS", []) or [])
        if not allowed:
            if settings.DEBUG:
                self.get_logger().warning(
                    "PAYD_ALLOWED_IPS empty, accepting webhook in DEBUG",
                    extra={"remote_addr": inbound.remote_addr},
                )
                return True
            self.get_logger().error(
                "PAYD_ALLOWED_IPS not configured, rejecting webhook",
                extra={"remote_addr": inbound.remote_addr},
            )
            return False

        if ip_allowed(inbound.remote_addr, allowed):
            return True
        self.get_logger().warning(
            f"Rejected Payd webhook from {inbound.remote_addr}",
            extra={"remote_addr": inbound.remote_addr},
        )
        return False

    def extract_webhook(self, payload: Mapping[str, Any]) -> CallbackIdentifiers:
        body = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        return CallbackIdentifiers(
            primary_id=pick(body, "checkout_id"),
            order_number=pick(body, "order_number"),
            provider_reference=pick(body, "transaction_reference", "correlator_id", "transaction_id"),
            invoice_id=pick(body, "invoice_id"),
            api_ref=pick(body, "reference", "api_ref"),
            raw_status=pick(body, "status", "status_code", "result_code") or None,
        )

    def extract_callback(self, query: Mapping[str, Any]) -> CallbackIdentifiers:
        return CallbackIdentifiers(
            order_number=pick(query, "order_number"),
            provider_reference=pick(query, "transaction_reference", "correlator_id"),
            api_ref=pick(query, "reference", "api_ref"),
        )

    # -------------------------------------------------------------------------
    # Payouts
    # -------------------------------------------------------------------------

    def initiate_payout(self, request: PayoutRequest) -> PayoutResult:
        """
        Send money to a mobile number.

        Raises:
            ProviderRejectedError: 4xx, or success=false in the answer
            ExternalProviderError: Transport failure or 5xx
        """
        payload = {
            "username": settings.PAYD_USERNAME,
            "channel": "MPESA",
            "phone_number": request.phone_number,
            "amount": float(round2(request.amount)),
            "narration": request.narration,
            "callback_url": self._callback_url("/api/v1/payments/callbacks/payd/payout/"),
            "reference": request.reference,
        }
        data = self._request(
            "POST",
            f"{self.payout_base_url}/withdrawal",
            operation="initiate_payout",
            json=payload,
            auth=self.auth,
        )
        if data.get("success") is False:
            raise ProviderRejectedError(
                self._error_message(data) or "Payd rejected the payout",
                provider=self.name,
                raw_response=data,
            )

        return PayoutResult(
            provider_reference=pick(data, "correlator_id", "transaction_id", "reference"),
            raw_status=pick(data, "status") or None,
            message=pick(data, "message"),
            raw_response=data,
        )
