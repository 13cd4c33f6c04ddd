"""
Pesapal API v3 adapter.

Flow:
    1. POST Auth/RequestToken for a bearer token (cached until shortly
       before it expires)
    2. POST Transactions/SubmitOrderRequest; the payer is sent to
       redirect_url and Pesapal issues an OrderTrackingId
    3. Pesapal calls the registered IPN URL with OrderNotificationType,
       OrderTrackingId and OrderMerchantReference but no status; the status
       is always read from Transactions/GetTransactionStatus

IPNs are unsigned. They are accepted when they are structurally valid and
are never trusted for the payment status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.cache import cache

from payments.exceptions import ExternalProviderError, ProviderRejectedError
from payments.money import round2
from payments.state_machines import PaymentProvider

from .base import CallbackIdentifiers, InitiationResult, ProviderAdapter, pick

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .base import InboundRequest, InitiationRequest, StatusResult

IPN_NOTIFICATION_TYPE = "IPNCHANGE"
TOKEN_CACHE_KEY = "pesapal:access_token"
# Tokens live five minutes
TOKEN_CACHE_SECONDS = 240


class PesapalAdapter(ProviderAdapter):
    """Pesapal v3 hosted checkout."""

    name = PaymentProvider.PESAPAL
    trusts_webhook_status = False

    @property
    def base_url(self) -> str:
        return settings.PESAPAL_BASE_URL.rstrip("/")

    def _token(self) -> str:
        token = cache.get(TOKEN_CACHE_KEY)
        if token:
            return token

        data = self._request(
            "POST",
            f"{self.base_url}/api/Auth/RequestToken",
            operation="request_token",
            json={
                "consumer_key": settings.PESAPAL_CONSUMER_KEY,
                "consumer_secret": settings.PESAPAL_CONSUMER_SECRET,
            },
        )
        token = pick(data, "token")
        if not token:
            raise ExternalProviderError(
                self._error_message(data) or "Pesapal did not issue an access token",
                provider=self.name,
                is_retryable=False,
                raw_response=data,
                error_code="PROVIDER_AUTH_FAILED",
            )
        cache.set(TOKEN_CACHE_KEY, token, timeout=TOKEN_CACHE_SECONDS)
        return token

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token()}",
            "Accept": "application/json",
        }

    def initiate(self, request: InitiationRequest) -> InitiationResult:
        customer = request.customer
        payload = {
            "id": request.api_ref,
            "currency": request.currency,
            "amount": float(round2(request.amount)),
            "description": (request.description or request.api_ref)[:100],
            "callback_url": request.callback_url or settings.PESAPAL_CALLBACK_URL,
            "notification_id": settings.PESAPAL_IPN_ID,
            "billing_address": {
                "email_address": customer.email,
                "phone_number": customer.phone_number,
                "first_name": customer.first_name,
                "last_name": customer.last_name,
            },
        }
        data = self._request(
            "POST",
            f"{self.base_url}/api/Transactions/SubmitOrderRequest",
            operation="initiate",
            json=payload,
            headers=self._headers(),
        )
        if data.get("error") or not pick(data, "redirect_url"):
            raise ProviderRejectedError(
                self._error_message(data) or "Pesapal rejected the order request",
                provider=self.name,
                raw_response=data,
            )

        return InitiationResult(
            checkout_url=pick(data, "redirect_url"),
            provider_reference=pick(data, "order_tracking_id"),
            api_ref=pick(data, "merchant_reference") or request.api_ref,
            raw_response=data,
        )

    def check_status(self, reference: str) -> StatusResult:
        data = self._request(
            "GET",
            f"{self.base_url}/api/Transactions/GetTransactionStatus",
            operation="check_status",
            params={"orderTrackingId": reference},
            headers=self._headers(),
        )
        raw_status = pick(data, "payment_status_description") or None
        return self._status_result(raw_status, reference, data)

    def verify_signature(self, inbound: InboundRequest) -> bool:
        try:
            payload = inbound.json() if inbound.body else dict(inbound.query)
        except ValueError:
            return False
        notification_type = pick(payload, "OrderNotificationType").upper()
        return notification_type == IPN_NOTIFICATION_TYPE and bool(pick(payload, "OrderTrackingId"))

    def extract_webhook(self, payload: Mapping[str, Any]) -> CallbackIdentifiers:
        return CallbackIdentifiers(
            primary_id=pick(payload, "OrderTrackingId"),
            api_ref=pick(payload, "OrderMerchantReference"),
        )

    def extract_callback(self, query: Mapping[str, Any]) -> CallbackIdentifiers:
        return self.extract_webhook(query)

    def webhook_ack(self, identifiers: CallbackIdentifiers) -> dict[str, Any]:
        return {
            "orderNotificationType": IPN_NOTIFICATION_TYPE,
            "orderTrackingId": identifiers.primary_id,
            "orderMerchantReference": identifiers.api_ref,
            "status": 200,
        }
