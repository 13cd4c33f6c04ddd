"""
DRF views for payments app.

This module provides API views for:
- Withdrawal requests by sellers and organizers
- Admin overrides of stuck withdrawals
- Buyer refund requests and their admin confirmation

Webhook and redirect callback endpoints live in payments.webhooks.views.

Endpoints:
    POST  /api/v1/payments/withdrawals/ - Request a withdrawal
    PATCH /api/v1/payments/withdrawals/{id}/ - Admin override (completed/failed)
    POST  /api/v1/payments/refund-requests/ - Request a refund payout
    POST  /api/v1/payments/refund-requests/{id}/confirm/ - Admin confirm
    POST  /api/v1/payments/refund-requests/{id}/reject/ - Admin reject
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from payments.serializers import (
    RefundDecisionSerializer,
    RefundRequestCreateSerializer,
    RefundRequestSerializer,
    WithdrawalCreateSerializer,
    WithdrawalOverrideSerializer,
    WithdrawalSerializer,
)
from payments.services import RefundRequestService, WithdrawalService

logger = logging.getLogger(__name__)


def _failure(result) -> Response:
    return Response(result.to_response(), status=result.status_code)


class WithdrawalCreateView(APIView):
    """
    Withdraw a seller, organizer or event balance.

    POST /api/v1/payments/withdrawals/

    The balance is debited before the payout provider is called. A
    provider failure re-credits it and the request comes back FAILED.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "withdrawals"

    @extend_schema(
        operation_id="create_withdrawal",
        summary="Request a withdrawal",
        request=WithdrawalCreateSerializer,
        responses={
            201: WithdrawalSerializer,
            400: OpenApiResponse(description="Invalid amount, phone number or insufficient balance"),
            403: OpenApiResponse(description="User does not own the balance"),
            404: OpenApiResponse(description="Event not found"),
        },
        tags=["Payments - Withdrawals"],
    )
    def post(self, request):
        serializer = WithdrawalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = WithdrawalService.create_withdrawal(
            request.user,
            entity_type=data["entity_type"],
            amount=data["amount"],
            payout_number=data["payout_number"],
            payout_name=data["payout_name"],
            entity_id=data.get("entity_id") or None,
        )
        if not result.success:
            return _failure(result)

        return Response(WithdrawalSerializer(result.data).data, status=status.HTTP_201_CREATED)


class WithdrawalOverrideView(APIView):
    """
    Force a withdrawal to completed or failed.

    PATCH /api/v1/payments/withdrawals/{id}/

    Failing a withdrawal re-credits the balance. Terminal requests are
    rejected with 400.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="override_withdrawal",
        summary="Admin withdrawal override",
        request=WithdrawalOverrideSerializer,
        responses={
            200: WithdrawalSerializer,
            400: OpenApiResponse(description="Invalid status or withdrawal already terminal"),
            404: OpenApiResponse(description="Withdrawal not found"),
        },
        tags=["Payments - Withdrawals"],
    )
    def patch(self, request, pk):
        serializer = WithdrawalOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = WithdrawalService.admin_override(
            pk,
            request.user,
            serializer.validated_data["status"],
            reason=serializer.validated_data["reason"],
        )
        if not result.success:
            return _failure(result)

        logger.info(
            "Withdrawal overridden",
            extra={"withdrawal_id": str(pk), "admin_id": str(request.user.pk)},
        )
        return Response(WithdrawalSerializer(result.data).data)


class RefundRequestCreateView(APIView):
    """
    Ask for the refunds balance to be paid out.

    POST /api/v1/payments/refund-requests/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_refund_request",
        summary="Request a refund payout",
        request=RefundRequestCreateSerializer,
        responses={
            201: RefundRequestSerializer,
            400: OpenApiResponse(description="Invalid amount or insufficient refunds balance"),
            403: OpenApiResponse(description="User is not a buyer"),
            409: OpenApiResponse(description="A pending request already exists"),
        },
        tags=["Payments - Refunds"],
    )
    def post(self, request):
        serializer = RefundRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = RefundRequestService.create_request(request.user, **serializer.validated_data)
        if not result.success:
            return _failure(result)

        return Response(RefundRequestSerializer(result.data).data, status=status.HTTP_201_CREATED)


class RefundRequestDecisionView(APIView):
    """
    Confirm or reject a pending refund request.

    POST /api/v1/payments/refund-requests/{id}/confirm/
    POST /api/v1/payments/refund-requests/{id}/reject/
    """

    permission_classes = [IsAdminUser]
    decision = "confirm"

    @extend_schema(
        request=RefundDecisionSerializer,
        responses={
            200: RefundRequestSerializer,
            400: OpenApiResponse(description="Insufficient refunds balance"),
            404: OpenApiResponse(description="Refund request not found"),
            409: OpenApiResponse(description="Refund request already processed"),
        },
        tags=["Payments - Refunds"],
    )
    def post(self, request, pk):
        serializer = RefundDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        handler = RefundRequestService.confirm if self.decision == "confirm" else RefundRequestService.reject
        result = handler(pk, request.user, notes=serializer.validated_data["notes"])
        if not result.success:
            return _failure(result)

        return Response(RefundRequestSerializer(result.data).data)
