"""
Payment reconciliation.

Applies one normalized payment status to one order. Webhooks, redirect
callbacks and the pending-payment poller all end up here, so replays and
races between them are resolved in a single place: the Order row lock
serialises them and a terminal payment_status short-circuits every replay.

Outcomes:
    processed: Order (and possibly its balances) updated
    already_processed: payment_status already terminal, nothing changed
    ignored: Pending or in-flight status, fulfilment untouched
    not_found: No such order
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from notifications.events import NotificationEvent
from notifications.services import notify
from orders.exceptions import OrderNotFoundError
from orders.services import OrderStateMachine, post_payment_status
from orders.states import ActorType, OrderStatus
from payments.models import Payment
from payments.normalizer import is_terminal, normalize
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from typing import Any

    from orders.models import Order

logger = logging.getLogger(__name__)

FAILURE_STATUSES = (PaymentStatus.FAILED, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED)


class ReconcileOutcome(str, Enum):
    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"


class PaymentReconciler:
    """Idempotent application of provider payment results to orders."""

    @classmethod
    def apply(
        cls,
        order_id,
        canonical_status,
        provider: str = "",
        raw: dict[str, Any] | None = None,
    ) -> ReconcileOutcome:
        """
        Apply a payment status to an order in one transaction.

        canonical_status may be a PaymentStatus or any raw provider string;
        it is normalized again here.

        Raises:
            OrderTerminalError, InvalidStatusTransitionError: Only if the
                fulfilment state contradicts the payment state; the
                transaction is rolled back
        """
        status = normalize(canonical_status)
        log_context = {"order_id": str(order_id), "provider": provider, "payment_status": str(status)}

        with transaction.atomic():
            try:
                order = OrderStateMachine.lock(order_id)
            except OrderNotFoundError:
                logger.warning("Payment result for unknown order", extra=log_context)
                return ReconcileOutcome.NOT_FOUND

            if is_terminal(order.payment_status):
                logger.info(
                    f"Order {order.order_number} payment already {order.payment_status}",
                    extra={**log_context, "current_payment_status": order.payment_status},
                )
                return ReconcileOutcome.ALREADY_PROCESSED

            cls._sync_payment_rows(order, status, provider)

            if status == PaymentStatus.PENDING:
                return ReconcileOutcome.IGNORED

            if status == PaymentStatus.PROCESSING:
                if order.payment_status != PaymentStatus.PROCESSING:
                    order.payment_status = PaymentStatus.PROCESSING
                    order.save(update_fields=["payment_status", "updated_at"])
                return ReconcileOutcome.IGNORED

            order.merge_meta(
                last_payment_result={
                    "provider": provider,
                    "status": str(status),
                    "received_at": timezone.now().isoformat(),
                    "raw": raw or {},
                }
            )

            if status == PaymentStatus.COMPLETED:
                cls._apply_completed(order, provider)
            else:
                cls._apply_failed(order, status, provider)

        logger.info(f"Payment result applied to order {order.order_number}", extra=log_context)
        return ReconcileOutcome.PROCESSED

    @staticmethod
    def _sync_payment_rows(order: Order, status: str, provider: str) -> None:
        payments = Payment.objects.filter(order=order)
        if provider:
            payments = payments.filter(provider=provider)
        payments.exclude(status=status).update(status=status, updated_at=timezone.now())

    @staticmethod
    def _apply_completed(order: Order, provider: str) -> None:
        order.payment_status = PaymentStatus.COMPLETED
        order.paid_at = order.paid_at or timezone.now()
        if provider and not order.provider:
            order.provider = provider

        if order.status in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            OrderStateMachine.transition(
                order,
                post_payment_status(order),
                ActorType.PROVIDER,
                notes=f"Payment confirmed by {provider or 'provider'}",
            )
        else:
            order.save()

        notify(
            NotificationEvent.PAYMENT_RECEIVED,
            {
                "order_id": str(order.pk),
                "order_number": order.order_number,
                "amount": order.total_amount,
                "provider": provider,
                "email": order.buyer.user.email,
            },
        )

    @staticmethod
    def _apply_failed(order: Order, status: str, provider: str) -> None:
        order.payment_status = status
        if order.is_terminal:
            order.save()
        else:
            OrderStateMachine.transition(
                order,
                OrderStatus.CANCELLED,
                ActorType.PROVIDER,
                notes=f"Payment {status} at {provider or 'provider'}",
            )

        if status != PaymentStatus.REFUNDED:
            notify(
                NotificationEvent.PAYMENT_FAILED,
                {
                    "order_id": str(order.pk),
                    "order_number": order.order_number,
                    "payment_status": status,
                    "provider": provider,
                    "email": order.buyer.user.email,
                },
            )
