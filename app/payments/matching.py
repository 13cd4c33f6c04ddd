"""
Order matching strategies for inbound payment notifications.

Providers echo back whichever identifiers they like. Each matcher tries one
kind of identifier; ORDER_MATCHERS runs them in order and the first hit
wins. A matcher that has nothing to go on returns None; none of them
guess.

Usage:
    from payments.matching import match_order

    order_id, matcher = match_order(identifiers, provider="intasend")
    if order_id is None:
        ...  # 404, left for manual reconciliation
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from core.helpers import parse_uuid
from orders.models import Order
from payments.models import Payment

if TYPE_CHECKING:
    from uuid import UUID

    from payments.providers import CallbackIdentifiers

logger = logging.getLogger(__name__)

API_REF_PATTERN = re.compile(r"^ORD-(?P<order_id>[0-9a-fA-F-]{32,36})$")


class OrderMatcher(ABC):
    """One strategy for finding the order a notification refers to."""

    name: str = ""

    @abstractmethod
    def match(self, identifiers: CallbackIdentifiers, provider: str = "") -> UUID | None:
        """Return the order id, or None when this strategy finds nothing."""

    @staticmethod
    def _payments(provider: str):
        queryset = Payment.objects.all()
        if provider:
            queryset = queryset.filter(provider=provider)
        return queryset

    @staticmethod
    def _first_order_id(queryset) -> UUID | None:
        return queryset.values_list("pk", flat=True).first()

    @staticmethod
    def _first_payment_order_id(queryset) -> UUID | None:
        return queryset.order_by("-created_at").values_list("order_id", flat=True).first()


class PrimaryIdMatcher(OrderMatcher):
    """Provider primary id (checkout_id, collection_id, OrderTrackingId)."""

    name = "primary_id"

    def match(self, identifiers, provider=""):
        value = identifiers.primary_id
        if not value:
            return None
        return self._first_order_id(
            Order.objects.filter(metadata__checkout_id=value)
        ) or self._first_payment_order_id(
            self._payments(provider).filter(provider_reference=value)
        )


class OrderNumberMatcher(OrderMatcher):
    name = "order_number"

    def match(self, identifiers, provider=""):
        value = identifiers.order_number
        if not value:
            return None
        return self._first_order_id(Order.objects.filter(order_number=value))


class ProviderReferenceMatcher(OrderMatcher):
    name = "provider_reference"

    def match(self, identifiers, provider=""):
        value = identifiers.provider_reference
        if not value:
            return None
        return self._first_order_id(Order.objects.filter(provider_reference=value))


class InvoiceIdMatcher(OrderMatcher):
    name = "invoice_id"

    def match(self, identifiers, provider=""):
        value = identifiers.invoice_id
        if not value:
            return None
        return self._first_order_id(
            Order.objects.filter(metadata__invoice_id=value)
        ) or self._first_payment_order_id(
            self._payments(provider).filter(invoice_id=value)
        )


class ApiRefMatcher(OrderMatcher):
    """
    Merchant reference sent at initiation.

    ORD-<uuid> references resolve to the order id directly; anything else
    is looked up in Order.metadata.api_ref and Payment.api_ref.
    """

    name = "api_ref"

    def match(self, identifiers, provider=""):
        value = identifiers.api_ref
        if not value:
            return None

        parsed = API_REF_PATTERN.match(value)
        if parsed:
            order_id = parse_uuid(parsed.group("order_id"))
            if order_id and Order.objects.filter(pk=order_id).exists():
                return order_id

        return self._first_order_id(
            Order.objects.filter(metadata__api_ref=value)
        ) or self._first_payment_order_id(
            self._payments(provider).filter(api_ref=value)
        )


ORDER_MATCHERS: tuple[OrderMatcher, ...] = (
    PrimaryIdMatcher(),
    OrderNumberMatcher(),
    ProviderReferenceMatcher(),
    InvoiceIdMatcher(),
    ApiRefMatcher(),
)


def match_order(
    identifiers: CallbackIdentifiers,
    provider: str = "",
    matchers: tuple[OrderMatcher, ...] = ORDER_MATCHERS,
) -> tuple[UUID | None, str]:
    """
    Run matchers in order.

    Returns:
        (order_id, matcher name), or (None, "") when nothing matched
    """
    for matcher in matchers:
        order_id = matcher.match(identifiers, provider)
        if order_id is not None:
            logger.debug(
                f"Matched order {order_id} by {matcher.name}",
                extra={"order_id": str(order_id), "matcher": matcher.name, "provider": provider},
            )
            return order_id, matcher.name

    logger.warning(
        "No order matched payment notification",
        extra={"provider": provider, "identifiers": identifiers.as_dict()},
    )
    return None, ""
