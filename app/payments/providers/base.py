"""
Provider adapter contract and shared HTTP plumbing.

Every payment provider is wrapped in a ProviderAdapter. Adapters are the
only code that knows a provider's URLs, auth scheme, payload field names
and signature scheme; they hand back provider-neutral dataclasses.

Error Classification:
    - Transport errors, timeouts, 5xx: ExternalProviderError(is_retryable=True)
    - 4xx: ProviderRejectedError(is_retryable=False)
    - Open circuit: ExternalProviderError(is_retryable=True) without a call

Usage:
    from payments.providers import get_adapter

    adapter = get_adapter("intasend")
    result = adapter.initiate(InitiationRequest(amount=..., api_ref=order.api_ref))
    status = adapter.check_status(result.provider_reference)
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings

from core.circuit_breaker import CircuitBreaker
from payments.exceptions import ExternalProviderError, ProviderRejectedError
from payments.normalizer import normalize
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from django.http import HttpRequest

    from orders.models import Order


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class Customer:
    email: str = ""
    phone_number: str = ""
    first_name: str = ""
    last_name: str = ""


@dataclass
class InitiationRequest:
    """
    Parameters for starting a checkout.

    Attributes:
        amount: Amount to collect, KES
        api_ref: Merchant reference (ORD-<order uuid>)
        description: Shown to the payer where the provider supports it
        callback_url: Where the provider redirects the payer afterwards
    """

    amount: Decimal
    api_ref: str
    customer: Customer = field(default_factory=Customer)
    description: str = ""
    currency: str = "KES"
    callback_url: str = ""


@dataclass
class InitiationResult:
    """Provider identifiers issued for a new checkout."""

    checkout_url: str
    provider_reference: str = ""
    invoice_id: str = ""
    api_ref: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class StatusResult:
    """
    Polled payment status.

    Attributes:
        raw_status: Status string exactly as the provider sent it
        canonical: Normalized PaymentStatus
        reference: Reference the status was polled for
    """

    raw_status: str | None
    canonical: PaymentStatus
    reference: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class CallbackIdentifiers:
    """
    Identifiers extracted from a webhook body or redirect query string.

    Attributes:
        primary_id: Provider's primary id (checkout_id, collection_id,
            OrderTrackingId)
        order_number: Our order number, when echoed back
        provider_reference: Provider transaction reference
        invoice_id: Provider invoice id
        api_ref: Merchant reference we sent at initiation
        raw_status: Raw payment status, when the payload carries one
    """

    primary_id: str = ""
    order_number: str = ""
    provider_reference: str = ""
    invoice_id: str = ""
    api_ref: str = ""
    raw_status: str | None = None

    @property
    def has_reference(self) -> bool:
        return any(
            (self.primary_id, self.order_number, self.provider_reference, self.invoice_id, self.api_ref)
        )

    @property
    def display_reference(self) -> str:
        return (
            self.order_number
            or self.api_ref
            or self.primary_id
            or self.provider_reference
            or self.invoice_id
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "primary_id": self.primary_id,
            "order_number": self.order_number,
            "provider_reference": self.provider_reference,
            "invoice_id": self.invoice_id,
            "api_ref": self.api_ref,
            "raw_status": self.raw_status,
        }


@dataclass
class InboundRequest:
    """
    Transport-neutral view of an inbound provider request.

    Header lookups are case-insensitive.
    """

    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    remote_addr: str = ""
    query: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_django(cls, request: HttpRequest, remote_addr: str = "") -> InboundRequest:
        return cls(
            body=request.body,
            headers=dict(request.headers),
            remote_addr=remote_addr or request.META.get("REMOTE_ADDR", ""),
            query=request.GET.dict(),
        )

    def header(self, name: str, default: str = "") -> str:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    def json(self) -> dict[str, Any]:
        """
        Decode the body as a JSON object.

        Raises:
            ValueError: Body is not a JSON object
        """
        data = json.loads(self.body.decode("utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError("Webhook body must be a JSON object")
        return data


@dataclass
class PayoutRequest:
    amount: Decimal
    phone_number: str
    reference: str
    narration: str = "Withdrawal request"


@dataclass
class PayoutResult:
    """
    Payout provider answer.

    Attributes:
        provider_reference: Provider correlator id used by the payout callback
        raw_status: Provider status at acceptance time
    """

    provider_reference: str
    raw_status: str | None = None
    message: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


def pick(data: Mapping[str, Any], *keys: str) -> str:
    """First non-empty value among keys, as a string."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


# =============================================================================
# Adapter Base
# =============================================================================


class ProviderAdapter:
    """
    Base class for payment provider adapters.

    Attributes:
        name: PaymentProvider value
        trusts_webhook_status: False when webhook payload status must be
            confirmed with check_status() before it is applied
    """

    name: str = ""
    trusts_webhook_status: bool = True

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()
        self.breaker = CircuitBreaker(f"provider:{self.name}")

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    def initiate(self, request: InitiationRequest) -> InitiationResult:
        raise NotImplementedError

    def check_status(self, reference: str) -> StatusResult:
        raise NotImplementedError

    def verify_signature(self, inbound: InboundRequest) -> bool:
        raise NotImplementedError

    def extract_webhook(self, payload: Mapping[str, Any]) -> CallbackIdentifiers:
        raise NotImplementedError

    def extract_callback(self, query: Mapping[str, Any]) -> CallbackIdentifiers:
        raise NotImplementedError

    def status_reference(self, order: Order) -> str:
        """Reference check_status() expects for this order."""
        return order.provider_reference or order.get_meta("checkout_id", "")

    def webhook_ack(self, identifiers: CallbackIdentifiers) -> dict[str, Any]:
        """Extra fields the provider expects in the webhook response body."""
        return {}

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    @property
    def timeout(self) -> float:
        return float(getattr(settings, "PROVIDER_HTTP_TIMEOUT_SECONDS", 15))

    def _status_result(self, raw_status, reference: str, raw: dict[str, Any]) -> StatusResult:
        return StatusResult(
            raw_status=None if raw_status is None else str(raw_status),
            canonical=normalize(raw_status),
            reference=reference,
            raw=raw,
        )

    def _request(self, method: str, url: str, *, operation: str, **kwargs) -> dict[str, Any]:
        """
        Perform one provider HTTP call and decode the JSON answer.

        Raises:
            ExternalProviderError: Transport failure, 5xx or open circuit
            ProviderRejectedError: 4xx answer
        """
        logger = self.get_logger()
        log_context = {
            "provider": self.name,
            "operation": operation,
            "method": method,
            "url": url,
        }

        if not self.breaker.is_available():
            logger.warning("Provider circuit open, failing fast", extra=log_context)
            raise ExternalProviderError(
                f"{self.name} is temporarily unavailable",
                provider=self.name,
                is_retryable=True,
                error_code="PROVIDER_UNAVAILABLE",
            )

        start_time = time.time()
        logger.info("Starting provider operation", extra=log_context)

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            self.breaker.record_failure()
            logger.warning(
                f"Provider transport error: {e}",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise ExternalProviderError(
                f"{self.name} request failed: {e}",
                provider=self.name,
                is_retryable=True,
                error_code="PROVIDER_UNAVAILABLE",
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        data = self._decode(response)
        status_code = response.status_code

        if status_code >= 500:
            self.breaker.record_failure()
            logger.warning(
                "Provider server error",
                extra={**log_context, "status_code": status_code, "duration_ms": duration_ms},
            )
            raise ExternalProviderError(
                f"{self.name} returned HTTP {status_code}",
                provider=self.name,
                is_retryable=True,
                raw_response=data,
                details={"status_code": status_code},
            )

        self.breaker.record_success()

        if status_code >= 400:
            logger.warning(
                "Provider rejected request",
                extra={**log_context, "status_code": status_code, "duration_ms": duration_ms},
            )
            raise ProviderRejectedError(
                self._error_message(data) or f"{self.name} returned HTTP {status_code}",
                provider=self.name,
                is_retryable=False,
                raw_response=data,
                details={"status_code": status_code},
            )

        logger.info(
            "Provider operation completed",
            extra={**log_context, "status_code": status_code, "duration_ms": duration_ms},
        )
        return data

    @staticmethod
    def _decode(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {"raw": response.text}
        return data if isinstance(data, dict) else {"data": data}

    @staticmethod
    def _error_message(data: Mapping[str, Any]) -> str:
        error = data.get("error")
        if isinstance(error, dict):
            return pick(error, "message", "code")
        return pick(data, "message", "detail", "error", "errors")
