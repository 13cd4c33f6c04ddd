"""
Celery tasks for payment processing.

This module provides async tasks for:
- Flagging withdrawals stuck in PROCESSING
- Polling providers for payments that never received a webhook
- Retrying failed withdrawal compensations
- Cancelling orders past their drop-off or pickup deadline
- Periodic cleanup of old webhook events

Usage:
    from payments.tasks import compensate_withdrawal

    # Retry re-crediting a withdrawal whose payout call failed
    compensate_withdrawal.delay(str(withdrawal_id), "Provider timeout")

    # Poll providers for unconfirmed payments (typically via celery-beat)
    from payments.tasks import reconcile_pending_payments
    reconcile_pending_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.exceptions import ExternalProviderError, LockAcquisitionError
from payments.locks import DistributedLock
from payments.models import Payment, WebhookEvent
from payments.providers import get_adapter
from payments.reconciliation import PaymentReconciler, ReconcileOutcome
from payments.state_machines import PaymentStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_COMPENSATION_RETRIES = 10

# Payments older than this are no longer polled
PENDING_PAYMENT_MAX_AGE_HOURS = 24

# Give the provider webhook a chance before polling
PENDING_PAYMENT_MIN_AGE_MINUTES = 2

PENDING_PAYMENT_BATCH_SIZE = 100

RECONCILE_LOCK_TTL = 600


# =============================================================================
# Withdrawal Tasks
# =============================================================================


@shared_task
def reconcile_stuck_withdrawals(hours_ago: int | None = None) -> dict:
    """
    Periodic task to flag withdrawals stuck in PROCESSING.

    Guarded by a non-blocking lock so overlapping beat runs skip instead
    of flagging twice.

    Returns:
        Dict with counts of checked and flagged requests
    """
    from payments.services import WithdrawalService

    try:
        with DistributedLock("task:reconcile_stuck_withdrawals", ttl=RECONCILE_LOCK_TTL, blocking=False):
            result = WithdrawalService.reconcile_stuck_withdrawals(hours_ago=hours_ago)
    except LockAcquisitionError:
        logger.info("Stuck withdrawal reconciliation already running, skipping")
        return {"status": "skipped"}

    if result["flagged"]:
        logger.warning(
            f"Flagged {result['flagged']} stuck withdrawals",
            extra=result,
        )
    return {"status": "completed", **result}


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": MAX_COMPENSATION_RETRIES},
    acks_late=True,
)
def compensate_withdrawal(self, withdrawal_id: str, error: str) -> dict:
    """
    Re-credit a withdrawal whose payout call failed.

    Scheduled when the inline compensation could not commit. Safe to run
    any number of times: terminal requests are left alone and the ledger
    credit is keyed per withdrawal.

    Args:
        withdrawal_id: UUID of the WithdrawalRequest
        error: Payout error recorded on the request

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    from payments.services import WithdrawalService

    try:
        withdrawal = WithdrawalService.compensate(withdrawal_id, error)
    except Exception:
        if self.request.retries >= MAX_COMPENSATION_RETRIES:
            logger.critical(
                f"Compensation retries exhausted for withdrawal {withdrawal_id}, manual re-credit required",
                extra={"withdrawal_id": withdrawal_id, "payout_error": error},
                exc_info=True,
            )
        raise

    logger.info(
        f"Withdrawal {withdrawal.reference} compensated",
        extra={"withdrawal_id": withdrawal_id, "status": withdrawal.status},
    )
    return {"status": withdrawal.status, "withdrawal_id": withdrawal_id}


# =============================================================================
# Order Deadline Tasks
# =============================================================================


@shared_task
def cancel_expired_orders() -> dict:
    """
    Periodic task to cancel orders that missed a fulfilment deadline.

    Sellers have SELLER_DROPOFF_DEADLINE_HOURS to drop items off and
    buyers BUYER_PICKUP_DEADLINE_HOURS to collect them. Lapsed orders are
    cancelled by the system and paid ones refunded to the buyer. Orders
    are never completed automatically.

    Returns:
        Dict with counts of expired and cancelled orders
    """
    from orders.services import OrderService

    try:
        with DistributedLock("task:cancel_expired_orders", ttl=RECONCILE_LOCK_TTL, blocking=False):
            result = OrderService.cancel_expired_orders()
    except LockAcquisitionError:
        logger.info("Order deadline check already running, skipping")
        return {"status": "skipped"}

    if result["cancelled"]:
        logger.info(
            f"Cancelled {result['cancelled']} orders past their deadline",
            extra=result,
        )
    return {"status": "completed", **result}


# =============================================================================
# Payment Tasks
# =============================================================================


@shared_task
def reconcile_pending_payments() -> dict:
    """
    Periodic task to poll providers for unconfirmed payments.

    Covers lost webhooks: every pending or processing Payment younger
    than a day is checked and the result applied through the reconciler.
    One provider failing does not stop the others.

    Returns:
        Dict with counts of checked, applied and errored payments
    """
    now = timezone.now()
    payments = (
        Payment.objects.filter(
            status__in=[PaymentStatus.PENDING, PaymentStatus.PROCESSING],
            created_at__gt=now - timedelta(hours=PENDING_PAYMENT_MAX_AGE_HOURS),
            created_at__lt=now - timedelta(minutes=PENDING_PAYMENT_MIN_AGE_MINUTES),
        )
        .select_related("order")
        .order_by("created_at")[:PENDING_PAYMENT_BATCH_SIZE]
    )

    checked = applied = errors = 0
    for payment in payments:
        checked += 1
        log_context = {"payment_id": str(payment.pk), "order_id": str(payment.order_id), "provider": payment.provider}
        adapter = get_adapter(payment.provider)
        reference = adapter.status_reference(payment.order) or payment.provider_reference
        if not reference:
            logger.warning("Pending payment has no provider reference", extra=log_context)
            continue

        try:
            result = adapter.check_status(reference)
        except ExternalProviderError as e:
            errors += 1
            logger.warning(f"Status check failed: {e.message}", extra=log_context)
            continue

        outcome = PaymentReconciler.apply(payment.order_id, result.canonical, provider=adapter.name, raw=result.raw)
        if outcome == ReconcileOutcome.PROCESSED:
            applied += 1

    if checked:
        logger.info(
            f"Polled {checked} pending payments, applied {applied}",
            extra={"checked": checked, "applied": applied, "errors": errors},
        )
    return {"checked": checked, "applied": applied, "errors": errors}


# =============================================================================
# Webhook Maintenance Tasks
# =============================================================================


@shared_task
def cleanup_webhook_events(days: int | None = None) -> dict:
    """
    Periodic task to clean up old processed webhook events.

    Failed events are kept for debugging.

    Args:
        days: Delete processed events older than this many days

    Returns:
        Dict with count of events deleted
    """
    days = days if days is not None else settings.WEBHOOK_EVENT_RETENTION_DAYS
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status__in=[WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED],
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )

    return {"deleted_count": deleted_count}
