"""
Order and OrderStatusHistory models.

Order is the financial record of a purchase from a seller or of tickets for
an event. Its status is an FSM field that can only change through
Order.change_status(), which the OrderStateMachine calls on a row-locked
instance after the role policy has accepted the transition.

Usage:
    from orders.models import Order, OrderStatusHistory

    order = Order.objects.create(
        buyer=buyer,
        seller=seller,
        total_amount=Decimal("1000.00"),
        metadata={"items": [{"product_type": "physical", "quantity": 1}]},
    )
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import RETURN_VALUE, FSMField, transition

from core.model_mixins import (
    AppendOnlyMixin,
    MetadataMixin,
    UUIDPrimaryKeyMixin,
    VersionedMixin,
)
from core.models import BaseModel
from orders.states import (
    NON_TERMINAL_ORDER_STATUSES,
    TERMINAL_ORDER_STATUSES,
    ActorType,
    OrderStatus,
    ProductType,
)
from payments.state_machines import PaymentProvider, PaymentStatus


def generate_order_number() -> str:
    return f"ORD-{uuid.uuid4().hex[:10].upper()}"


class Order(UUIDPrimaryKeyMixin, MetadataMixin, VersionedMixin, BaseModel):
    """
    Marketplace order.

    Exactly one of seller/event is set. Fee fields stay null until the
    order completes and are never recomputed afterwards.

    State Flow:
        PENDING -> PROCESSING -> DELIVERY_PENDING -> DELIVERY_COMPLETE -> COMPLETED
        PENDING -> COLLECTION_PENDING / SERVICE_PENDING -> COMPLETED
        any non-terminal -> CANCELLED
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    order_number = models.CharField(
        max_length=32,
        unique=True,
        default=generate_order_number,
        editable=False,
        help_text="Human and provider friendly reference",
    )
    buyer = models.ForeignKey(
        "accounts.Buyer",
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Buyer who placed the order",
    )
    seller = models.ForeignKey(
        "accounts.Seller",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Seller fulfilling the order (product/service orders)",
    )
    event = models.ForeignKey(
        "accounts.Event",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
        help_text="Event the tickets belong to (ticket orders)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.PENDING,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
        help_text="Fulfilment status (managed by FSM)",
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
        help_text="Canonical payment status",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount charged to the buyer",
    )
    platform_fee_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Platform fee, set once when the order completes",
    )
    seller_payout_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount credited to the seller or event, set once on completion",
    )

    # ==========================================================================
    # Provider
    # ==========================================================================

    payment_method = models.CharField(
        max_length=30,
        blank=True,
        help_text="Payment method chosen at checkout (e.g. mpesa, card)",
    )
    provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        blank=True,
        help_text="Payment provider used for checkout",
    )
    provider_reference = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Provider-issued transaction reference",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Fulfilment Deadlines
    # ==========================================================================

    dropoff_deadline = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Seller must drop the items off by this time (DELIVERY_PENDING)",
    )
    pickup_deadline = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Buyer must collect the items by this time (DELIVERY_COMPLETE)",
    )
    auto_cancel_reason = models.CharField(
        max_length=255,
        blank=True,
        help_text="Set when the order was cancelled for a missed deadline",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["buyer", "status"], name="orders_orde_buyer_i_5c1d2e_idx"),
            models.Index(fields=["seller", "status"], name="orders_orde_seller__8a7f3b_idx"),
            models.Index(fields=["payment_status", "created_at"], name="orders_orde_payment_1e9c4a_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gt=0),
                name="order_total_positive",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(seller__isnull=False, event__isnull=True)
                    | models.Q(seller__isnull=True, event__isnull=False)
                ),
                name="order_single_payee",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.order_number}, {self.status}, {self.total_amount})"

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    @property
    def is_event_order(self) -> bool:
        return self.event_id is not None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def fees_settled(self) -> bool:
        return self.platform_fee_amount is not None or self.seller_payout_amount is not None

    @property
    def api_ref(self) -> str:
        """Merchant reference sent to payment providers."""
        return f"ORD-{self.pk}"

    @property
    def items(self) -> list[dict]:
        return list(self.get_meta("items", []) or [])

    def product_types(self) -> set[str]:
        return {
            str(item.get("product_type", ProductType.PHYSICAL)).lower()
            for item in self.items
        }

    def deadline_passed(self, now=None) -> bool:
        """Whether the deadline for the current waiting state has lapsed."""
        now = now or timezone.now()
        if self.status == OrderStatus.DELIVERY_PENDING:
            deadline = self.dropoff_deadline
        elif self.status == OrderStatus.DELIVERY_COMPLETE:
            deadline = self.pickup_deadline
        else:
            return False
        return deadline is not None and deadline < now

    def involves_user(self, user) -> bool:
        """Whether the user is the buyer or the payee of this order."""
        if user is None:
            return False
        if self.buyer.user_id == user.pk:
            return True
        if self.seller_id is not None:
            return self.seller.user_id == user.pk
        return self.event.owned_by(user)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=NON_TERMINAL_ORDER_STATUSES,
        target=RETURN_VALUE(*OrderStatus.values),
    )
    def change_status(self, target: str) -> str:
        """
        Move the order to target and stamp the matching timestamp or deadline.

        Policy checks happen before this is called; the FSM only guarantees
        that a terminal order never changes again.
        """
        now = timezone.now()
        if target == OrderStatus.COMPLETED:
            self.completed_at = now
        elif target == OrderStatus.DELIVERY_PENDING:
            self.dropoff_deadline = now + timedelta(hours=settings.SELLER_DROPOFF_DEADLINE_HOURS)
        elif target == OrderStatus.DELIVERY_COMPLETE:
            self.pickup_deadline = now + timedelta(hours=settings.BUYER_PICKUP_DEADLINE_HOURS)
        elif target == OrderStatus.CANCELLED:
            self.cancelled_at = now
        return target


class OrderStatusHistory(AppendOnlyMixin, BaseModel):
    """
    Append-only audit trail of order status changes.

    One row is written per accepted transition, in the same transaction as
    the order update.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="status_history",
    )
    status = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        help_text="Status entered",
    )
    previous_status = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        blank=True,
        help_text="Status left",
    )
    notes = models.TextField(blank=True)
    created_by_type = models.CharField(
        max_length=20,
        choices=ActorType.choices,
        help_text="Kind of actor that caused the change",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User that caused the change, if any",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name_plural = "Order status history"
        indexes = [
            models.Index(fields=["order", "created_at"], name="orders_orde_order_i_7b2e91_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: {self.previous_status} -> {self.status}"
