"""
Order transition policy.

Decides, without touching the database, whether an actor may move an order
from its current status to a target status. The checks run in a fixed
order so callers get the most specific error:

    1. terminal order       -> OrderTerminalError (409)
    2. role not permitted   -> ForbiddenTransitionError (403)
    3. edge not in graph    -> InvalidStatusTransitionError (409)

Admins bypass the graph but never the terminal check. Only payment
confirmation (system or provider actors) or an admin may move an order out
of PENDING/PROCESSING into fulfilment or COMPLETED.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from orders.exceptions import (
    ForbiddenTransitionError,
    InvalidStatusTransitionError,
    OrderTerminalError,
)
from orders.states import TERMINAL_ORDER_STATUSES, ActorType, OrderStatus

if TYPE_CHECKING:
    from orders.models import Order

S = OrderStatus

_FULFILMENT_STATES = (S.DELIVERY_PENDING, S.COLLECTION_PENDING, S.SERVICE_PENDING)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    S.PENDING: frozenset({S.PROCESSING, *_FULFILMENT_STATES, S.COMPLETED, S.CANCELLED}),
    S.PROCESSING: frozenset({*_FULFILMENT_STATES, S.COMPLETED, S.CANCELLED}),
    S.DELIVERY_PENDING: frozenset({S.DELIVERY_COMPLETE, S.CANCELLED}),
    S.COLLECTION_PENDING: frozenset({S.DELIVERY_COMPLETE, S.COMPLETED, S.CANCELLED}),
    S.SERVICE_PENDING: frozenset({S.DELIVERY_COMPLETE, S.COMPLETED, S.CANCELLED}),
    S.DELIVERY_COMPLETE: frozenset({S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

# Digital goods and tickets complete straight from payment.
SYSTEM_ONLY_TRANSITIONS = frozenset(
    {
        (S.PENDING, S.COMPLETED),
        (S.PROCESSING, S.COMPLETED),
    }
)

SYSTEM_ACTORS = frozenset({ActorType.SYSTEM, ActorType.PROVIDER})

# Leaving these for fulfilment or completion means the payment was confirmed.
AWAITING_PAYMENT = frozenset({S.PENDING, S.PROCESSING})
PAYMENT_GATED_TARGETS = frozenset({*_FULFILMENT_STATES, S.COMPLETED})

BUYER_TARGETS = frozenset({S.COMPLETED, S.CANCELLED})


class OrderPolicy:
    """Role and graph checks for order transitions."""

    @staticmethod
    def resolve_actor(order: Order, user) -> str:
        """
        Map an authenticated user to their role on this order.

        Raises:
            ForbiddenTransitionError: The user has no relation to the order
        """
        if user is not None and getattr(user, "is_admin", False):
            return ActorType.ADMIN
        if user is not None:
            if order.seller_id is not None and order.seller.user_id == user.pk:
                return ActorType.SELLER
            if order.event_id is not None and order.event.owned_by(user):
                return ActorType.SELLER
            if order.buyer.user_id == user.pk:
                return ActorType.BUYER
        raise ForbiddenTransitionError(order.pk, "unrelated user", "any status")

    @staticmethod
    def is_role_permitted(actor: str, current: str, target: str) -> bool:
        if actor == ActorType.ADMIN or actor in SYSTEM_ACTORS:
            return True
        if current in AWAITING_PAYMENT and target in PAYMENT_GATED_TARGETS:
            return False
        if actor == ActorType.SELLER:
            return target != S.COMPLETED
        if actor == ActorType.BUYER:
            return target in BUYER_TARGETS
        return False

    @staticmethod
    def is_edge_allowed(actor: str, current: str, target: str) -> bool:
        if current == target:
            return False
        if actor == ActorType.ADMIN:
            return True
        if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            return False
        if (current, target) in SYSTEM_ONLY_TRANSITIONS:
            return actor in SYSTEM_ACTORS
        return True

    @classmethod
    def check_transition(cls, order: Order, actor: str, target: str) -> None:
        """
        Raise if actor may not move order to target; return None otherwise.
        """
        current = order.status
        if current in TERMINAL_ORDER_STATUSES:
            raise OrderTerminalError(order.pk, current)
        if target not in S.values:
            raise InvalidStatusTransitionError(order.pk, current, target)
        if not cls.is_role_permitted(actor, current, target):
            raise ForbiddenTransitionError(order.pk, actor, target)
        if not cls.is_edge_allowed(actor, current, target):
            raise InvalidStatusTransitionError(order.pk, current, target)
