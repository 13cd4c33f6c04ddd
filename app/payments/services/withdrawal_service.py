"""
Withdrawal service: payouts of seller, organizer and event balances.

The service follows a debit-first, call-after-commit pattern:
1. Phase 1: Lock the balance holder, debit it and insert the request as
   PROCESSING, all in one transaction
2. Phase 2: Call the payout provider outside any transaction, under a
   DistributedLock on the request
3. Phase 3: Store the provider reference; the payout callback (or an
   admin) finishes the request

If the provider call fails, a separate compensating transaction
re-credits the balance and marks the request FAILED. If that also fails,
the compensate_withdrawal task keeps retrying and operators are alerted.

Usage:
    from payments.services import WithdrawalService

    result = WithdrawalService.create_withdrawal(
        user,
        entity_type="seller",
        amount=Decimal("500.00"),
        payout_number="0712345678",
        payout_name="Jane Doe",
    )
    if not result.success:
        return Response(result.to_response(), status=result.status_code)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from accounts.models import EntityType, Organizer, Seller
from core.exceptions import (
    BaseApplicationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService, ServiceResult
from core.validators import normalize_payout_number, validate_not_blank
from notifications.events import NotificationEvent
from notifications.services import notify
from payments.exceptions import (
    AlreadyProcessedError,
    CompensationFailedError,
    ExternalProviderError,
    LockAcquisitionError,
)
from payments.ledger import ledger
from payments.locks import DistributedLock
from payments.models import WithdrawalRequest
from payments.money import round2, to_decimal
from payments.normalizer import normalize
from payments.providers import PayoutRequest, get_payout_adapter
from payments.providers.base import pick
from payments.reconciliation import ReconcileOutcome
from payments.state_machines import PaymentStatus, WithdrawalStatus

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User
    from payments.providers import ProviderAdapter


# =============================================================================
# Constants
# =============================================================================

# Distributed lock TTL for the payout call (seconds)
PAYOUT_LOCK_TTL = 60

# Lock acquisition timeout (seconds)
PAYOUT_LOCK_TIMEOUT = 10.0

# Requests older than this are left to operators entirely
STUCK_WITHDRAWAL_MAX_HOURS = 48

PAYOUT_REFERENCE_KEYS = ("correlator_id", "transaction_id", "reference", "original_reference")

OVERRIDE_STATUSES = (WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED)


def _holder_for(withdrawal: WithdrawalRequest):
    return ledger.lock_holder(withdrawal.entity_type, withdrawal.holder_id)


# =============================================================================
# Withdrawal Service
# =============================================================================


class WithdrawalService(BaseService):
    """
    Withdrawal request lifecycle.

    Safety Guarantees:
        - The balance is debited before the request exists, in one transaction
        - No provider call happens inside a database transaction
        - A failed payout is re-credited exactly once (ledger idempotency key)
        - Terminal requests never change again
    """

    # Payout adapter - can be injected for testing
    _payout_adapter: ProviderAdapter | None = None

    @classmethod
    def get_payout_adapter(cls) -> ProviderAdapter:
        return cls._payout_adapter or get_payout_adapter()

    @classmethod
    def set_payout_adapter(cls, adapter: ProviderAdapter | None) -> None:
        """Set the payout adapter (for testing)."""
        cls._payout_adapter = adapter

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    @classmethod
    def create_withdrawal(
        cls,
        user: User,
        *,
        entity_type: str,
        amount,
        payout_number: str,
        payout_name: str,
        entity_id=None,
    ) -> ServiceResult[WithdrawalRequest]:
        """
        Debit a balance and send it to a mobile money number.

        The returned request is PROCESSING when the provider accepted the
        payout, or FAILED (balance re-credited) when it did not.
        """
        logger = cls.get_logger()
        try:
            amount = cls._validate_amount(amount)
            payout_number = normalize_payout_number(payout_number)
            payout_name = validate_not_blank(payout_name, "payout_name")
            holder_id, owner = cls._resolve_holder(user, entity_type, entity_id)

            with cls.atomic():
                holder = ledger.lock_holder(entity_type, holder_id, owner=owner)
                withdrawal = WithdrawalRequest(
                    entity_type=entity_type,
                    requested_by=user,
                    amount=amount,
                    payout_number=payout_number,
                    payout_name=payout_name,
                )
                setattr(withdrawal, entity_type, holder)

                deduction = withdrawal.deducted_amount()
                balance_after = ledger.debit(
                    holder,
                    deduction,
                    reason="withdrawal",
                    reference_type="withdrawal",
                    reference_id=str(withdrawal.pk),
                    idempotency_key=f"withdrawal-debit:{withdrawal.pk}",
                )

                withdrawal.start_processing()
                withdrawal.merge_meta(deducted_amount=str(deduction))
                withdrawal.save()

                notify(
                    NotificationEvent.WITHDRAWAL_REQUESTED,
                    {
                        "withdrawal_id": str(withdrawal.pk),
                        "reference": withdrawal.reference,
                        "entity_type": entity_type,
                        "amount": amount,
                        "email": user.email,
                    },
                )
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Withdrawal rejected", log_level=logging.INFO)

        logger.info(
            f"Withdrawal {withdrawal.reference} debited {deduction} from {entity_type}:{holder_id}",
            extra={
                "withdrawal_id": str(withdrawal.pk),
                "entity_type": entity_type,
                "holder_id": str(holder_id),
                "amount": str(amount),
                "deducted": str(deduction),
                "balance_after": str(balance_after),
            },
        )

        return ServiceResult.success(cls._dispatch_payout(withdrawal))

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        amount = round2(amount)
        minimum = to_decimal(settings.MIN_WITHDRAWAL_AMOUNT)
        maximum = to_decimal(settings.MAX_WITHDRAWAL_AMOUNT)
        if amount < minimum or amount > maximum:
            raise ValidationError(
                f"Withdrawal amount must be between KES {minimum} and KES {maximum}",
                error_code="INVALID_AMOUNT",
                details={"amount": str(amount), "min": str(minimum), "max": str(maximum)},
            )
        return amount

    @staticmethod
    def _resolve_holder(user: User, entity_type: str, entity_id) -> tuple[Any, Organizer | None]:
        """
        Work out which balance the user may withdraw from.

        Returns:
            (holder id, owner organizer for event lookups)
        """
        if entity_type not in EntityType.values:
            raise ValidationError(
                f"Unknown entity type: {entity_type}",
                error_code="INVALID_ENTITY_TYPE",
                details={"entity_type": str(entity_type)},
            )

        if entity_type == EntityType.SELLER:
            profile = Seller.objects.filter(user=user).first()
        else:
            profile = Organizer.objects.filter(user=user).first()
        if profile is None:
            raise PermissionDeniedError(
                f"You do not have a {entity_type} balance",
                error_code="NOT_ENTITY_OWNER",
            )

        if entity_type == EntityType.EVENT:
            if not entity_id:
                raise ValidationError(
                    "entity_id is required for event withdrawals",
                    error_code="VALIDATION_ERROR",
                    details={"entity_id": ["This field is required."]},
                )
            return entity_id, profile

        if entity_id and str(entity_id) != str(profile.pk):
            raise PermissionDeniedError(
                f"You do not own {entity_type} {entity_id}",
                error_code="NOT_ENTITY_OWNER",
            )
        return profile.pk, None

    # -------------------------------------------------------------------------
    # Payout call
    # -------------------------------------------------------------------------

    @classmethod
    def _dispatch_payout(cls, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        """
        Call the payout provider for a committed PROCESSING request.

        Must never run inside a transaction.
        """
        logger = cls.get_logger()
        log_context = {"withdrawal_id": str(withdrawal.pk), "reference": withdrawal.reference}
        adapter = cls.get_payout_adapter()

        try:
            with DistributedLock(
                f"withdrawal:{withdrawal.pk}", ttl=PAYOUT_LOCK_TTL, timeout=PAYOUT_LOCK_TIMEOUT
            ):
                result = adapter.initiate_payout(
                    PayoutRequest(
                        amount=withdrawal.amount,
                        phone_number=withdrawal.payout_number,
                        reference=withdrawal.reference,
                        narration=f"Withdrawal {withdrawal.reference}",
                    )
                )
        except LockAcquisitionError:
            # Another worker owns this payout; the stuck-withdrawal job flags it if nobody finishes
            logger.warning("Payout already in progress elsewhere", extra=log_context)
            return withdrawal
        except ExternalProviderError as e:
            logger.error(
                f"Payout call failed: {e.message}",
                extra={**log_context, "provider": e.provider, "retryable": e.is_retryable},
            )
            return cls._compensate_or_escalate(withdrawal.pk, e.message, raw=e.raw_response)

        if normalize(result.raw_status) in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            logger.error(
                f"Payout refused by provider: {result.message}",
                extra={**log_context, "raw_status": result.raw_status},
            )
            return cls._compensate_or_escalate(
                withdrawal.pk, result.message or "Payout refused by provider", raw=result.raw_response
            )

        with cls.atomic():
            withdrawal = WithdrawalRequest.objects.select_for_update().get(pk=withdrawal.pk)
            withdrawal.provider_reference = result.provider_reference
            withdrawal.merge_meta(payout_response=result.raw_response)
            withdrawal.save(update_fields=["provider_reference", "metadata", "updated_at"])

        logger.info(
            "Payout accepted by provider",
            extra={**log_context, "provider_reference": result.provider_reference},
        )
        return withdrawal

    # -------------------------------------------------------------------------
    # Compensation
    # -------------------------------------------------------------------------

    @classmethod
    def _fail_locked(
        cls,
        withdrawal: WithdrawalRequest,
        error: str,
        **metadata,
    ) -> Decimal:
        """
        Re-credit and fail a row-locked, non-terminal request.

        Runs inside the caller's transaction. Event withdrawals are
        re-credited the gross amount that was deducted.
        """
        holder = _holder_for(withdrawal)
        refund = withdrawal.deducted_amount()
        balance_after = ledger.credit(
            holder,
            refund,
            reason="withdrawal_failed",
            reference_type="withdrawal",
            reference_id=str(withdrawal.pk),
            idempotency_key=f"withdrawal-refund:{withdrawal.pk}",
        )
        withdrawal.fail(error=error)
        withdrawal.merge_meta(refunded_amount=str(refund), **metadata)
        withdrawal.save()

        notify(
            NotificationEvent.WITHDRAWAL_FAILED,
            {
                "withdrawal_id": str(withdrawal.pk),
                "reference": withdrawal.reference,
                "amount": withdrawal.amount,
                "refunded": refund,
                "error": error,
            },
        )
        cls.get_logger().info(
            f"Withdrawal {withdrawal.reference} failed, re-credited {refund}",
            extra={
                "withdrawal_id": str(withdrawal.pk),
                "refunded": str(refund),
                "balance_after": str(balance_after),
            },
        )
        return refund

    @classmethod
    def compensate(cls, withdrawal_id, error: str, raw: dict[str, Any] | None = None) -> WithdrawalRequest:
        """
        Compensating transaction for a failed payout call.

        A request that is already terminal is returned unchanged, so the
        retry task can call this any number of times.

        Raises:
            NotFoundError: No such request
        """
        with cls.atomic():
            withdrawal = WithdrawalRequest.objects.select_for_update().filter(pk=withdrawal_id).first()
            if withdrawal is None:
                raise NotFoundError(
                    f"Withdrawal {withdrawal_id} not found",
                    error_code="WITHDRAWAL_NOT_FOUND",
                )
            if withdrawal.is_terminal:
                return withdrawal
            cls._fail_locked(withdrawal, error, api_response=raw or None)
        return withdrawal

    @classmethod
    def _compensate_or_escalate(cls, withdrawal_id, error: str, raw: dict[str, Any] | None = None) -> WithdrawalRequest:
        try:
            return cls.compensate(withdrawal_id, error, raw=raw)
        except (DatabaseError, BaseApplicationError) as e:
            failure = CompensationFailedError(
                f"Could not re-credit withdrawal {withdrawal_id}: {e}",
                details={"withdrawal_id": str(withdrawal_id)},
            )
            cls.get_logger().critical(
                str(failure),
                extra={"withdrawal_id": str(withdrawal_id), "payout_error": error},
                exc_info=True,
            )
            notify(
                NotificationEvent.WITHDRAWAL_COMPENSATION_FAILED,
                {"withdrawal_id": str(withdrawal_id), "error": str(e), "payout_error": error},
            )

            from payments.tasks import compensate_withdrawal

            compensate_withdrawal.delay(str(withdrawal_id), error)
            return WithdrawalRequest.objects.get(pk=withdrawal_id)

    # -------------------------------------------------------------------------
    # Provider callback
    # -------------------------------------------------------------------------

    @classmethod
    def handle_payout_callback(cls, payload: dict[str, Any]) -> ServiceResult[ReconcileOutcome]:
        """
        Apply a payout provider callback.

        Only final statuses act. Replays against terminal requests are
        reported as already processed, never as errors.
        Payd may wrap the result in a "data" object; it is unwrapped first.
        """
        logger = cls.get_logger()
        body = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        try:
            reference = pick(body, *PAYOUT_REFERENCE_KEYS)
            if not reference:
                raise ValidationError("Missing transaction reference", error_code="MISSING_REFERENCE")

            status = normalize(pick(body, "status", "status_code") or None)
            if status not in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
                logger.info(
                    f"Payout callback ignored, status {status}",
                    extra={"reference": reference, "payment_status": str(status)},
                )
                return ServiceResult.success(ReconcileOutcome.IGNORED)

            with cls.atomic():
                withdrawal = (
                    WithdrawalRequest.objects.select_for_update()
                    .filter(Q(provider_reference=reference) | Q(reference=reference))
                    .first()
                )
                if withdrawal is None:
                    raise NotFoundError(
                        f"No withdrawal for reference {reference}",
                        error_code="WITHDRAWAL_NOT_FOUND",
                        details={"reference": reference},
                    )
                if withdrawal.is_terminal:
                    return ServiceResult.success(ReconcileOutcome.ALREADY_PROCESSED)

                if status == PaymentStatus.COMPLETED:
                    withdrawal.complete()
                    withdrawal.merge_meta(callback=payload)
                    withdrawal.save()
                    notify(
                        NotificationEvent.WITHDRAWAL_COMPLETED,
                        {
                            "withdrawal_id": str(withdrawal.pk),
                            "reference": withdrawal.reference,
                            "amount": withdrawal.amount,
                        },
                    )
                else:
                    reason = pick(body, "status_description", "message") or "Unknown provider error"
                    cls._fail_locked(withdrawal, reason, callback=payload)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "Payout callback rejected", log_level=logging.WARNING)

        logger.info(
            f"Payout callback applied to {withdrawal.reference}: {withdrawal.status}",
            extra={"withdrawal_id": str(withdrawal.pk), "reference": reference},
        )
        return ServiceResult.success(ReconcileOutcome.PROCESSED)

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    @classmethod
    def admin_override(
        cls,
        withdrawal_id,
        admin: User,
        status: str,
        reason: str = "",
    ) -> ServiceResult[WithdrawalRequest]:
        """Force a non-terminal request to completed or failed."""
        try:
            if status not in OVERRIDE_STATUSES:
                raise ValidationError(
                    "Status must be completed or failed",
                    error_code="INVALID_STATUS",
                    details={"status": str(status)},
                )

            with cls.atomic():
                withdrawal = WithdrawalRequest.objects.select_for_update().filter(pk=withdrawal_id).first()
                if withdrawal is None:
                    raise NotFoundError(
                        f"Withdrawal {withdrawal_id} not found",
                        error_code="WITHDRAWAL_NOT_FOUND",
                    )
                if withdrawal.is_terminal:
                    raise AlreadyProcessedError(
                        f"Withdrawal already {withdrawal.status}",
                        details={"withdrawal_id": str(withdrawal.pk), "status": withdrawal.status},
                    )

                withdrawal.processed_by = admin
                if status == WithdrawalStatus.COMPLETED:
                    withdrawal.complete()
                    withdrawal.merge_meta(admin_reason=reason)
                    withdrawal.save()
                    notify(
                        NotificationEvent.WITHDRAWAL_COMPLETED,
                        {
                            "withdrawal_id": str(withdrawal.pk),
                            "reference": withdrawal.reference,
                            "amount": withdrawal.amount,
                        },
                    )
                else:
                    cls._fail_locked(withdrawal, reason or "Failed by admin", admin_reason=reason)
        except BaseApplicationError as e:
            return cls.handle_exception(e, f"Admin override rejected for {withdrawal_id}", log_level=logging.WARNING)

        cls.get_logger().info(
            f"Withdrawal {withdrawal.reference} set to {status} by admin",
            extra={"withdrawal_id": str(withdrawal.pk), "admin_id": str(admin.pk), "reason": reason},
        )
        return ServiceResult.success(withdrawal)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    @classmethod
    def reconcile_stuck_withdrawals(cls, hours_ago: int | None = None) -> dict[str, int]:
        """
        Flag PROCESSING requests that never heard back from the provider.

        Each request is flagged once: no_provider_reference when the payout
        call never returned a reference, needs_manual_review otherwise.
        """
        hours_ago = hours_ago if hours_ago is not None else settings.STUCK_WITHDRAWAL_HOURS
        now = timezone.now()
        candidates = WithdrawalRequest.objects.filter(
            status=WithdrawalStatus.PROCESSING,
            created_at__lt=now - timedelta(hours=hours_ago),
            created_at__gt=now - timedelta(hours=STUCK_WITHDRAWAL_MAX_HOURS),
        )

        checked = flagged = 0
        for withdrawal_id in candidates.values_list("pk", flat=True):
            checked += 1
            with cls.atomic():
                # Re-read under the row lock so a concurrent callback's metadata is kept
                withdrawal = (
                    WithdrawalRequest.objects.select_for_update()
                    .filter(pk=withdrawal_id, status=WithdrawalStatus.PROCESSING)
                    .first()
                )
                if withdrawal is None or withdrawal.has_meta("reconciliation_flag"):
                    continue
                flag = "needs_manual_review" if withdrawal.provider_reference else "no_provider_reference"
                withdrawal.merge_meta(reconciliation_flag=flag, flagged_at=now.isoformat())
                withdrawal.save(update_fields=["metadata", "updated_at"])
            flagged += 1
            cls.get_logger().warning(
                f"Stuck withdrawal {withdrawal.reference}: {flag}",
                extra={"withdrawal_id": str(withdrawal.pk), "flag": flag},
            )

        return {"checked": checked, "flagged": flagged}
