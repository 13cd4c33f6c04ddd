"""
Views for the orders API.

Endpoints:
    POST  /api/v1/orders/ - Place an order and start checkout
    GET   /api/v1/orders/{id}/ - Order detail
    PATCH /api/v1/orders/{id}/status/ - Role-gated status change
    POST  /api/v1/orders/{id}/confirm-receipt/ - Buyer confirms delivery
    POST  /api/v1/orders/{id}/cancel/ - Cancel a non-terminal order

Status changes go through OrderService, which locks the order row and
applies the role policy; views only translate results to responses.
"""

from __future__ import annotations

import logging

from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.models import Order
from orders.permissions import IsOrderParticipant
from orders.serializers import (
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
)
from orders.services import OrderService
from payments.providers import Customer
from payments.services import PaymentService

logger = logging.getLogger(__name__)


def _order_response(result, success_status: int = status.HTTP_200_OK) -> Response:
    if not result.success:
        return Response(result.to_response(), status=result.status_code)
    return Response(OrderSerializer(result.data).data, status=success_status)


class OrderCreateView(APIView):
    """
    Place an order and initiate checkout with a payment provider.

    POST /api/v1/orders/

    The order is created PENDING first. If the provider call then fails
    the order is kept and the error is returned together with it, so the
    client can retry checkout.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_order",
        summary="Place an order",
        request=OrderCreateSerializer,
        responses={
            201: OpenApiResponse(description="Order created, body carries order and checkout_url"),
            400: OpenApiResponse(description="Invalid payee, amount or items"),
            403: OpenApiResponse(description="User is not a buyer"),
            502: OpenApiResponse(description="Payment provider unavailable"),
        },
        tags=["Orders"],
    )
    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = OrderService.create_order(
            request.user,
            total_amount=data["total_amount"],
            items=data["items"],
            seller_id=data.get("seller_id"),
            event_id=data.get("event_id"),
            payment_method=data["payment_method"],
        )
        if not result.success:
            return Response(result.to_response(), status=result.status_code)
        order = result.data

        first_name, _, last_name = (request.user.full_name or "").partition(" ")
        customer = Customer(
            email=request.user.email,
            phone_number=data["phone_number"] or request.user.phone_number,
            first_name=first_name,
            last_name=last_name,
        )
        checkout = PaymentService.initiate_checkout(
            order,
            data.get("provider") or settings.DEFAULT_PAYMENT_PROVIDER,
            customer,
        )
        order = Order.objects.get(pk=order.pk)

        if not checkout.success:
            body = checkout.to_response()
            body["order"] = OrderSerializer(order).data
            return Response(body, status=checkout.status_code)

        return Response(
            {"order": OrderSerializer(order).data, "checkout_url": checkout.data.checkout_url},
            status=status.HTTP_201_CREATED,
        )


class OrderDetailView(APIView):
    """GET /api/v1/orders/{id}/"""

    permission_classes = [IsAuthenticated, IsOrderParticipant]

    @extend_schema(
        operation_id="get_order",
        summary="Get order",
        responses={200: OrderSerializer},
        tags=["Orders"],
    )
    def get(self, request, pk):
        order = get_object_or_404(
            Order.objects.select_related("buyer", "seller", "event", "event__organizer"),
            pk=pk,
        )
        self.check_object_permissions(request, order)
        return Response(OrderSerializer(order).data)


class OrderStatusUpdateView(APIView):
    """
    Move an order to a new status.

    PATCH /api/v1/orders/{id}/status/

    Terminal orders and illegal edges return 409; roles that may not
    apply the target return 403.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="update_order_status",
        summary="Update order status",
        request=OrderStatusUpdateSerializer,
        responses={
            200: OrderSerializer,
            403: OpenApiResponse(description="Role may not apply this status"),
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Order terminal or transition not allowed"),
        },
        tags=["Orders"],
    )
    def patch(self, request, pk):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.update_status(
            pk,
            request.user,
            serializer.validated_data["status"],
            notes=serializer.validated_data["notes"],
        )
        return _order_response(result)


class OrderConfirmReceiptView(APIView):
    """
    Buyer confirms the order arrived.

    POST /api/v1/orders/{id}/confirm-receipt/

    Completes the order and releases escrow to the seller or event.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="confirm_order_receipt",
        summary="Confirm receipt",
        request=None,
        responses={200: OrderSerializer},
        tags=["Orders"],
    )
    def post(self, request, pk):
        return _order_response(OrderService.confirm_receipt(pk, request.user))


class OrderCancelView(APIView):
    """POST /api/v1/orders/{id}/cancel/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_order",
        summary="Cancel order",
        request=OrderCancelSerializer,
        responses={200: OrderSerializer},
        tags=["Orders"],
    )
    def post(self, request, pk):
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = OrderService.cancel_order(pk, request.user, reason=serializer.validated_data["reason"])
        return _order_response(result)
