"""
Order services.

OrderStateMachine applies one transition to an Order that the caller has
already locked inside a transaction. OrderService is the public surface
used by views: it opens the transaction, locks the row, resolves the
caller's role and converts domain errors into ServiceResult.

Usage:
    from orders.services import OrderService

    result = OrderService.update_status(order_id, request.user, "DELIVERY_COMPLETE")
    if not result.success:
        return Response(result.to_response(), status=result.status_code)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q
from django.utils import timezone

from accounts.models import Buyer, Event, Seller
from core.exceptions import (
    BaseApplicationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService, ServiceResult
from notifications.events import NotificationEvent
from notifications.services import notify
from orders.exceptions import ForbiddenTransitionError, OrderNotFoundError
from orders.models import Order, OrderStatusHistory
from orders.policies import OrderPolicy
from orders.states import ActorType, OrderStatus, ProductType
from payments.escrow import release_funds
from payments.ledger import ledger
from payments.models import Payment
from payments.money import round2
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User


def post_payment_status(order: Order) -> str:
    """
    Status an order moves to once its payment is confirmed.

    Physical goods wait for collection when the seller has a pickup
    location, otherwise for delivery. Services wait for the service.
    Ticket orders and purely digital orders complete immediately.
    """
    if order.is_event_order:
        return OrderStatus.COMPLETED

    types = order.product_types() or {ProductType.PHYSICAL}
    if ProductType.PHYSICAL in types:
        if order.seller_id is not None and order.seller.has_shop:
            return OrderStatus.COLLECTION_PENDING
        return OrderStatus.DELIVERY_PENDING
    if ProductType.SERVICE in types:
        return OrderStatus.SERVICE_PENDING
    return OrderStatus.COMPLETED


class OrderStateMachine:
    """
    Transition engine for row-locked orders.

    Every accepted transition updates the order and appends exactly one
    OrderStatusHistory row in the caller's transaction. Notifications are
    dispatched after commit.
    """

    @staticmethod
    def lock(order_id) -> Order:
        """
        Load an order with SELECT ... FOR UPDATE.

        Raises:
            OrderNotFoundError: No such order
        """
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .select_related("buyer", "seller", "event", "event__organizer")
                .get(pk=order_id)
            )
        except (Order.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise OrderNotFoundError(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )

    @classmethod
    def transition(
        cls,
        order: Order,
        target: str,
        actor: str,
        user: User | None = None,
        notes: str = "",
    ) -> Order:
        """
        Move a locked order to target.

        Raises:
            OrderTerminalError: Order already COMPLETED or CANCELLED
            ForbiddenTransitionError: Actor's role may not apply target
            InvalidStatusTransitionError: Edge not in the transition graph
            ConflictError: Escrow already released
        """
        OrderPolicy.check_transition(order, actor, target)
        previous = order.status

        if target == OrderStatus.COMPLETED:
            cls._on_completed(order, actor)
        elif target == OrderStatus.CANCELLED:
            cls._on_cancelled(order)

        order.change_status(target)
        order.save()

        OrderStatusHistory.objects.create(
            order=order,
            status=target,
            previous_status=previous,
            notes=notes,
            created_by_type=actor,
            created_by=user,
        )

        notify(
            NotificationEvent.ORDER_STATUS_CHANGED,
            {
                "order_id": str(order.pk),
                "order_number": order.order_number,
                "status": target,
                "previous_status": previous,
                "payment_status": order.payment_status,
                "actor": actor,
                "email": order.buyer.user.email,
            },
        )
        return order

    @staticmethod
    def _on_completed(order: Order, actor: str) -> None:
        # An admin completing an unpaid order records the payment as received.
        if actor == ActorType.ADMIN and order.payment_status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            order.payment_status = PaymentStatus.COMPLETED
        if order.payment_status == PaymentStatus.COMPLETED and order.paid_at is None:
            order.paid_at = timezone.now()

        release = release_funds(order, source=actor)
        notify(
            NotificationEvent.ESCROW_RELEASED,
            {
                "order_id": release.order_id,
                "holder_type": release.holder_type,
                "holder_id": release.holder_id,
                "platform_fee": release.platform_fee,
                "net_payout": release.net_payout,
            },
        )

    @staticmethod
    def _on_cancelled(order: Order) -> None:
        if order.payment_status == PaymentStatus.COMPLETED:
            buyer = ledger.lock_holder(Buyer.entity_type, order.buyer_id)
            ledger.credit(
                buyer,
                order.total_amount,
                reason="order_cancelled",
                reference_type="order",
                reference_id=str(order.pk),
                idempotency_key=f"order-refund:{order.pk}",
            )
            order.payment_status = PaymentStatus.REFUNDED
        elif order.payment_status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            order.payment_status = PaymentStatus.CANCELLED

        # Abandoned checkout attempts stop being polled once the order is closed.
        Payment.objects.filter(
            order=order, status__in=[PaymentStatus.PENDING, PaymentStatus.PROCESSING]
        ).update(status=PaymentStatus.CANCELLED, updated_at=timezone.now())


class OrderService(BaseService):
    """Order creation and role-gated status changes."""

    @classmethod
    def create_order(
        cls,
        user: User,
        *,
        total_amount,
        items: list[dict[str, Any]],
        seller_id=None,
        event_id=None,
        payment_method: str = "",
    ) -> ServiceResult[Order]:
        """
        Create a PENDING order for the user's buyer profile.

        Exactly one of seller_id/event_id must be given.
        """
        try:
            buyer = Buyer.objects.filter(user=user).first()
            if buyer is None:
                raise PermissionDeniedError(
                    "Only buyers can place orders",
                    error_code="NOT_A_BUYER",
                )
            if bool(seller_id) == bool(event_id):
                raise ValidationError(
                    "Exactly one of seller_id or event_id is required",
                    error_code="INVALID_PAYEE",
                )

            total = round2(total_amount)
            if total <= Decimal("0"):
                raise ValidationError("Total amount must be positive", error_code="INVALID_AMOUNT")
            for item in items:
                product_type = str(item.get("product_type", ProductType.PHYSICAL)).lower()
                if product_type not in ProductType.values:
                    raise ValidationError(
                        f"Unknown product type: {product_type}",
                        error_code="INVALID_PRODUCT_TYPE",
                    )

            seller = event = None
            if seller_id:
                seller = Seller.objects.filter(pk=seller_id).first()
                if seller is None:
                    raise NotFoundError(f"Seller {seller_id} not found", error_code="SELLER_NOT_FOUND")
            else:
                event = Event.objects.filter(pk=event_id).first()
                if event is None:
                    raise NotFoundError(f"Event {event_id} not found", error_code="EVENT_NOT_FOUND")

            with cls.atomic():
                order = Order.objects.create(
                    buyer=buyer,
                    seller=seller,
                    event=event,
                    total_amount=total,
                    payment_method=payment_method,
                    metadata={"items": items},
                )
                OrderStatusHistory.objects.create(
                    order=order,
                    status=OrderStatus.PENDING,
                    previous_status="",
                    notes="Order created",
                    created_by_type=ActorType.BUYER,
                    created_by=user,
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Order creation failed", log_level=logging.INFO)

        cls.get_logger().info(
            f"Order {order.order_number} created",
            extra={"order_id": str(order.pk), "buyer_id": buyer.pk, "total": str(total)},
        )
        return ServiceResult.success(order)

    @classmethod
    def update_status(
        cls,
        order_id,
        user: User,
        status: str,
        notes: str = "",
    ) -> ServiceResult[Order]:
        """Role-gated transition requested through the API."""
        try:
            with cls.atomic():
                order = OrderStateMachine.lock(order_id)
                actor = OrderPolicy.resolve_actor(order, user)
                OrderStateMachine.transition(order, status, actor, user=user, notes=notes)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Status update rejected for order {order_id}", log_level=logging.WARNING)
        return ServiceResult.success(order)

    @classmethod
    def confirm_receipt(cls, order_id, user: User) -> ServiceResult[Order]:
        """Buyer confirms delivery; completes the order and releases escrow."""
        try:
            with cls.atomic():
                order = OrderStateMachine.lock(order_id)
                actor = OrderPolicy.resolve_actor(order, user)
                if actor != ActorType.BUYER:
                    raise ForbiddenTransitionError(order.pk, actor, OrderStatus.COMPLETED)
                OrderStateMachine.transition(
                    order,
                    OrderStatus.COMPLETED,
                    actor,
                    user=user,
                    notes="Receipt confirmed by buyer",
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Receipt confirmation rejected for order {order_id}", log_level=logging.WARNING)
        return ServiceResult.success(order)

    @classmethod
    def cancel_order(cls, order_id, user: User, reason: str = "") -> ServiceResult[Order]:
        """Cancel a non-terminal order; paid orders credit the buyer's refunds."""
        try:
            with cls.atomic():
                order = OrderStateMachine.lock(order_id)
                actor = OrderPolicy.resolve_actor(order, user)
                OrderStateMachine.transition(
                    order,
                    OrderStatus.CANCELLED,
                    actor,
                    user=user,
                    notes=reason or "Cancelled",
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Cancellation rejected for order {order_id}", log_level=logging.WARNING)
        return ServiceResult.success(order)

    @classmethod
    def cancel_expired_orders(cls) -> dict[str, int]:
        """
        Cancel paid physical orders whose fulfilment deadline has passed.

        A DELIVERY_PENDING order past its drop-off deadline failed on the
        seller's side; a DELIVERY_COMPLETE order past its pickup deadline
        was never collected. Both are cancelled by the system, which
        credits the buyer's refunds. Each order is re-checked under its
        row lock and committed on its own.

        Returns:
            Dict with counts of expired and cancelled orders
        """
        logger = cls.get_logger()
        now = timezone.now()
        reasons = {
            OrderStatus.DELIVERY_PENDING: "Seller missed the drop-off deadline",
            OrderStatus.DELIVERY_COMPLETE: "Buyer missed the pickup deadline",
        }
        expired = Order.objects.filter(
            Q(status=OrderStatus.DELIVERY_PENDING, dropoff_deadline__lt=now)
            | Q(status=OrderStatus.DELIVERY_COMPLETE, pickup_deadline__lt=now)
        ).values_list("pk", flat=True)

        checked = cancelled = 0
        for order_id in expired:
            checked += 1
            try:
                with cls.atomic():
                    order = OrderStateMachine.lock(order_id)
                    if not order.deadline_passed(now):
                        continue
                    reason = reasons[order.status]
                    order.auto_cancel_reason = reason
                    OrderStateMachine.transition(order, OrderStatus.CANCELLED, ActorType.SYSTEM, notes=reason)
            except BaseApplicationError as e:
                logger.warning(f"Deadline cancellation failed for order {order_id}: {e.message}")
                continue

            cancelled += 1
            logger.info(
                f"Order {order.order_number} cancelled: {reason}",
                extra={"order_id": str(order_id), "payment_status": order.payment_status},
            )

        return {"checked": checked, "cancelled": cancelled}

    @classmethod
    def apply_payment_result(
        cls,
        order_id,
        canonical_status: str,
        source: str,
        raw: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """
        Apply a normalised payment status to an order.

        Returns the reconciliation outcome (processed, already_processed,
        ignored) as data.
        """
        from payments.reconciliation import PaymentReconciler

        try:
            outcome = PaymentReconciler.apply(order_id, canonical_status, provider=source, raw=raw)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Payment result rejected for order {order_id}")
        return ServiceResult.success(outcome)
