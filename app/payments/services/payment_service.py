"""
Checkout initiation.

PaymentService asks a provider for a hosted checkout and records the
identifiers it issues on the Order and on a Payment row, so that whatever
the provider later echoes back can be matched. No row lock is held during
the provider call: the order is only re-read and updated afterwards.

Usage:
    from payments.services import PaymentService

    result = PaymentService.initiate_checkout(order, "intasend", customer)
    if result.success:
        redirect_to(result.data.checkout_url)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError
from core.services import BaseService, ServiceResult
from orders.services import OrderStateMachine
from orders.states import OrderStatus
from payments.models import Payment
from payments.providers import Customer, InitiationRequest, get_adapter

if TYPE_CHECKING:
    from orders.models import Order


@dataclass
class CheckoutResult:
    checkout_url: str
    payment: Payment


class PaymentService(BaseService):
    """Payment initiation against a provider adapter."""

    @classmethod
    def initiate_checkout(
        cls,
        order: Order,
        provider: str,
        customer: Customer | None = None,
        callback_url: str = "",
    ) -> ServiceResult[CheckoutResult]:
        """
        Start a hosted checkout for a PENDING order.

        Provider failures leave the order PENDING and return a failure
        carrying the provider error code.
        """
        logger = cls.get_logger()
        if order.status != OrderStatus.PENDING:
            return cls.handle_exception(
                ConflictError(
                    f"Order {order.order_number} is {order.status}, checkout needs PENDING",
                    error_code="ORDER_NOT_PENDING",
                    details={"order_id": str(order.pk), "status": order.status},
                ),
                log_level=logging.INFO,
            )

        try:
            adapter = get_adapter(provider)
            result = adapter.initiate(
                InitiationRequest(
                    amount=order.total_amount,
                    api_ref=order.api_ref,
                    customer=customer or Customer(),
                    description=f"Order {order.order_number}",
                    callback_url=callback_url,
                )
            )
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Checkout initiation failed for order {order.order_number}")

        with cls.atomic():
            locked = OrderStateMachine.lock(order.pk)
            locked.provider = adapter.name
            locked.provider_reference = result.provider_reference
            locked.merge_meta(
                checkout_id=result.provider_reference or None,
                invoice_id=result.invoice_id or None,
                api_ref=result.api_ref or order.api_ref,
                checkout_url=result.checkout_url,
                checkout_response=result.raw_response,
            )
            locked.save()

            payment = Payment.objects.create(
                order=locked,
                provider=adapter.name,
                invoice_id=result.invoice_id,
                provider_reference=result.provider_reference,
                api_ref=result.api_ref or order.api_ref,
                amount=locked.total_amount,
                metadata={"checkout_url": result.checkout_url},
            )

        logger.info(
            f"Checkout initiated for order {order.order_number}",
            extra={
                "order_id": str(order.pk),
                "provider": adapter.name,
                "provider_reference": result.provider_reference,
                "invoice_id": result.invoice_id,
            },
        )
        return ServiceResult.success(CheckoutResult(checkout_url=result.checkout_url, payment=payment))
