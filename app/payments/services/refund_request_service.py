"""
Buyer refund requests.

A buyer's refunds balance accrues from cancelled paid orders. The buyer
asks for it to be paid out; nothing is debited until an admin confirms,
at which point the balance is re-checked under a row lock.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError

from accounts.models import Buyer
from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService, ServiceResult
from core.validators import normalize_payout_number, validate_not_blank
from notifications.events import NotificationEvent
from notifications.services import notify
from payments.exceptions import InsufficientFundsError
from payments.ledger import ledger
from payments.models import RefundRequest
from payments.money import round2
from payments.state_machines import RefundRequestStatus

if TYPE_CHECKING:
    from authentication.models import User


class RefundRequestService(BaseService):
    """Create, confirm and reject buyer refund requests."""

    @classmethod
    def create_request(
        cls,
        user: User,
        amount,
        payout_number: str,
        payout_name: str,
    ) -> ServiceResult[RefundRequest]:
        try:
            buyer = Buyer.objects.filter(user=user).first()
            if buyer is None:
                raise PermissionDeniedError("Only buyers can request refunds", error_code="NOT_A_BUYER")

            amount = round2(amount)
            if amount <= Decimal("0"):
                raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")
            if amount > buyer.refunds:
                raise InsufficientFundsError(required=amount, available=buyer.refunds)

            payout_number = normalize_payout_number(payout_number)
            payout_name = validate_not_blank(payout_name, "payout_name")

            if RefundRequest.objects.filter(buyer=buyer, status=RefundRequestStatus.PENDING).exists():
                raise ConflictError(
                    "You already have a pending refund request",
                    error_code="PENDING_REFUND_EXISTS",
                )
            try:
                with cls.atomic():
                    request = RefundRequest.objects.create(
                        buyer=buyer,
                        amount=amount,
                        payout_number=payout_number,
                        payout_name=payout_name,
                    )
            except IntegrityError:
                # Lost a race against a concurrent request
                raise ConflictError(
                    "You already have a pending refund request",
                    error_code="PENDING_REFUND_EXISTS",
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Refund request rejected", log_level=logging.INFO)

        notify(
            NotificationEvent.REFUND_REQUESTED,
            {"refund_request_id": str(request.pk), "amount": amount, "email": user.email},
        )
        cls.get_logger().info(
            f"Refund request {request.pk} created for buyer {buyer.pk}",
            extra={"refund_request_id": str(request.pk), "buyer_id": buyer.pk, "amount": str(amount)},
        )
        return ServiceResult.success(request)

    @staticmethod
    def _lock_pending(request_id) -> RefundRequest:
        try:
            request = RefundRequest.objects.select_for_update().get(pk=request_id)
        except (RefundRequest.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise NotFoundError(
                f"Refund request {request_id} not found",
                error_code="REFUND_REQUEST_NOT_FOUND",
            )
        if request.status != RefundRequestStatus.PENDING:
            raise ConflictError(
                f"Refund request already {request.status}",
                error_code="REFUND_REQUEST_PROCESSED",
                details={"status": request.status},
            )
        return request

    @classmethod
    def confirm(cls, request_id, admin: User, notes: str = "") -> ServiceResult[RefundRequest]:
        """Debit the buyer's refunds balance and complete the request."""
        try:
            with cls.atomic():
                request = cls._lock_pending(request_id)
                buyer = ledger.lock_holder(Buyer.entity_type, request.buyer_id)
                ledger.debit(
                    buyer,
                    request.amount,
                    reason="refund_payout",
                    reference_type="refund_request",
                    reference_id=str(request.pk),
                    idempotency_key=f"refund-request:{request.pk}",
                )
                request.complete(admin, notes)
                request.save()
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Refund confirmation rejected for {request_id}", log_level=logging.WARNING)

        notify(
            NotificationEvent.REFUND_COMPLETED,
            {"refund_request_id": str(request.pk), "amount": request.amount, "email": buyer.user.email},
        )
        return ServiceResult.success(request)

    @classmethod
    def reject(cls, request_id, admin: User, notes: str = "") -> ServiceResult[RefundRequest]:
        """Reject a pending request; the balance is untouched."""
        try:
            with cls.atomic():
                request = cls._lock_pending(request_id)
                request.reject(admin, notes)
                request.save()
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Refund rejection failed for {request_id}", log_level=logging.WARNING)

        notify(
            NotificationEvent.REFUND_REJECTED,
            {"refund_request_id": str(request.pk), "notes": notes},
        )
        return ServiceResult.success(request)
