"""
Tests for OrderPolicy.

Pure checks on unsaved orders: role permissions, the transition graph and
the precedence of terminal > role > graph errors.
"""

from types import SimpleNamespace

import pytest

from orders.exceptions import (
    ForbiddenTransitionError,
    InvalidStatusTransitionError,
    OrderTerminalError,
)
from orders.policies import OrderPolicy
from orders.states import ActorType, OrderStatus


def _order(status):
    return SimpleNamespace(pk="order-1", status=status)


class TestRolePermissions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.DELIVERY_PENDING, OrderStatus.DELIVERY_COMPLETE),
            (OrderStatus.SERVICE_PENDING, OrderStatus.DELIVERY_COMPLETE),
        ],
    )
    def test_seller_may_move_paid_orders_to_anything_but_completed(self, current, target):
        assert OrderPolicy.is_role_permitted(ActorType.SELLER, current, target) is True

    @pytest.mark.parametrize("current", [OrderStatus.PENDING, OrderStatus.PROCESSING])
    @pytest.mark.parametrize(
        "target",
        [OrderStatus.DELIVERY_PENDING, OrderStatus.COLLECTION_PENDING, OrderStatus.SERVICE_PENDING, OrderStatus.COMPLETED],
    )
    def test_only_payment_confirmation_starts_fulfilment(self, current, target):
        assert OrderPolicy.is_role_permitted(ActorType.SELLER, current, target) is False
        assert OrderPolicy.is_role_permitted(ActorType.BUYER, current, target) is False
        assert OrderPolicy.is_role_permitted(ActorType.PROVIDER, current, target) is True
        assert OrderPolicy.is_role_permitted(ActorType.ADMIN, current, target) is True

    def test_seller_may_not_complete(self):
        assert OrderPolicy.is_role_permitted(ActorType.SELLER, OrderStatus.DELIVERY_COMPLETE, OrderStatus.COMPLETED) is False

    def test_buyer_limited_to_completed_and_cancelled(self):
        assert OrderPolicy.is_role_permitted(ActorType.BUYER, OrderStatus.DELIVERY_COMPLETE, OrderStatus.COMPLETED)
        assert OrderPolicy.is_role_permitted(ActorType.BUYER, OrderStatus.PENDING, OrderStatus.CANCELLED)
        assert not OrderPolicy.is_role_permitted(ActorType.BUYER, OrderStatus.PENDING, OrderStatus.PROCESSING)


class TestTransitionGraph:
    def test_delivery_pending_cannot_skip_to_completed(self):
        assert OrderPolicy.is_edge_allowed(ActorType.BUYER, OrderStatus.DELIVERY_PENDING, OrderStatus.COMPLETED) is False

    def test_collection_pending_completes_directly(self):
        assert OrderPolicy.is_edge_allowed(ActorType.BUYER, OrderStatus.COLLECTION_PENDING, OrderStatus.COMPLETED) is True

    def test_pending_to_completed_reserved_for_system(self):
        assert OrderPolicy.is_edge_allowed(ActorType.PROVIDER, OrderStatus.PENDING, OrderStatus.COMPLETED) is True
        assert OrderPolicy.is_edge_allowed(ActorType.BUYER, OrderStatus.PENDING, OrderStatus.COMPLETED) is False

    def test_admin_bypasses_graph(self):
        assert OrderPolicy.is_edge_allowed(ActorType.ADMIN, OrderStatus.DELIVERY_PENDING, OrderStatus.COMPLETED) is True

    def test_same_status_is_never_an_edge(self):
        assert OrderPolicy.is_edge_allowed(ActorType.ADMIN, OrderStatus.PROCESSING, OrderStatus.PROCESSING) is False


class TestCheckTransition:
    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_terminal_order_rejected_even_for_admin(self, terminal):
        with pytest.raises(OrderTerminalError) as exc_info:
            OrderPolicy.check_transition(_order(terminal), ActorType.ADMIN, OrderStatus.PROCESSING)

        assert exc_info.value.http_status == 409

    def test_role_checked_before_graph(self):
        # Buyer asking for an edge that also is not in the graph gets 403
        with pytest.raises(ForbiddenTransitionError):
            OrderPolicy.check_transition(_order(OrderStatus.DELIVERY_PENDING), ActorType.BUYER, OrderStatus.SERVICE_PENDING)

    def test_missing_edge_is_conflict(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            OrderPolicy.check_transition(_order(OrderStatus.DELIVERY_PENDING), ActorType.SELLER, OrderStatus.PROCESSING)

        assert exc_info.value.http_status == 409
        assert exc_info.value.details["target_status"] == OrderStatus.PROCESSING

    def test_unknown_target_is_conflict(self):
        with pytest.raises(InvalidStatusTransitionError):
            OrderPolicy.check_transition(_order(OrderStatus.PENDING), ActorType.ADMIN, "SHIPPED")

    def test_allowed_transition_returns_none(self):
        assert (
            OrderPolicy.check_transition(_order(OrderStatus.DELIVERY_PENDING), ActorType.SELLER, OrderStatus.DELIVERY_COMPLETE)
            is None
        )


class TestResolveActor:
    def test_resolves_roles(self, order, admin_user):
        assert OrderPolicy.resolve_actor(order, order.buyer.user) == ActorType.BUYER
        assert OrderPolicy.resolve_actor(order, order.seller.user) == ActorType.SELLER
        assert OrderPolicy.resolve_actor(order, admin_user) == ActorType.ADMIN

    def test_event_organizer_acts_as_seller(self, event_order):
        assert OrderPolicy.resolve_actor(event_order, event_order.event.organizer.user) == ActorType.SELLER

    def test_unrelated_user_is_forbidden(self, order):
        from authentication.tests.factories import UserFactory

        with pytest.raises(ForbiddenTransitionError):
            OrderPolicy.resolve_actor(order, UserFactory())
