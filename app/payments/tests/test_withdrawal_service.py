"""
Tests for WithdrawalService.

Tests cover:
- Debit before the payout call, gross deduction for event balances
- Compensation when the provider fails or refuses
- Payout callbacks, including replays
- Admin overrides and stuck-request flagging
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import DatabaseError, connection
from django.utils import timezone

from accounts.models import EntityType, Event, Seller
from accounts.tests.factories import BuyerFactory, EventFactory
from payments.exceptions import ExternalProviderError
from payments.ledger import BalanceEntry, EntryType, ledger
from payments.models import WithdrawalRequest
from payments.providers import PayoutResult
from payments.reconciliation import ReconcileOutcome
from payments.services import WithdrawalService
from payments.state_machines import WithdrawalStatus
from payments.tests.factories import WithdrawalRequestFactory


def _withdraw_seller(seller, amount="500.00", **kwargs):
    return WithdrawalService.create_withdrawal(
        seller.user,
        entity_type=EntityType.SELLER,
        amount=amount,
        payout_number=kwargs.pop("payout_number", "+254 712 345 678"),
        payout_name="Jane Wanjiku",
        **kwargs,
    )


def _withdraw_event(event, amount="940.00"):
    return WithdrawalService.create_withdrawal(
        event.organizer.user,
        entity_type=EntityType.EVENT,
        entity_id=event.pk,
        amount=amount,
        payout_number="0712345678",
        payout_name="Jazz Nights",
    )


# =============================================================================
# Creation
# =============================================================================


@pytest.mark.django_db
class TestCreateWithdrawal:
    def test_debits_balance_and_calls_provider(self, funded_seller, payout_adapter, mock_redis):
        result = _withdraw_seller(funded_seller)

        assert result.success
        withdrawal = result.data
        assert withdrawal.status == WithdrawalStatus.PROCESSING
        assert withdrawal.provider_reference == "COR-0001"
        assert withdrawal.payout_number == "0712345678"
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("500.00")

        payout = payout_adapter.initiate_payout.call_args.args[0]
        assert payout.amount == Decimal("500.00")
        assert payout.reference == withdrawal.reference

        entries = ledger.entries_for_reference("withdrawal", withdrawal.pk)
        assert [(e.entry_type, e.amount) for e in entries] == [(EntryType.DEBIT, Decimal("500.00"))]
        assert entries[0].idempotency_key == f"withdrawal-debit:{withdrawal.pk}"

    def test_payout_runs_under_distributed_lock(self, funded_seller, payout_adapter, mock_redis):
        result = _withdraw_seller(funded_seller)

        lock_key = mock_redis.set.call_args.args[0]
        assert lock_key == f"lock:withdrawal:{result.data.pk}"
        mock_redis.eval.assert_called_once()

    def test_event_withdrawal_deducts_gross(self, funded_event, payout_adapter, mock_redis):
        result = _withdraw_event(funded_event)

        assert result.success
        assert result.data.amount == Decimal("940.00")
        assert result.data.get_meta("deducted_amount") == "1000.00"
        assert Event.objects.get(pk=funded_event.pk).balance == Decimal("0.00")
        assert payout_adapter.initiate_payout.call_args.args[0].amount == Decimal("940.00")

    def test_insufficient_funds_changes_nothing(self, funded_seller, payout_adapter, mock_redis):
        result = _withdraw_seller(funded_seller, amount="1000.01")

        assert not result.success
        assert result.status_code == 400
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")
        assert not WithdrawalRequest.objects.exists()
        assert not BalanceEntry.objects.exists()
        payout_adapter.initiate_payout.assert_not_called()

    def test_balance_never_goes_negative(self, funded_seller, payout_adapter, mock_redis):
        first = _withdraw_seller(funded_seller, amount="600.00")
        second = _withdraw_seller(funded_seller, amount="600.00")

        assert first.success
        assert second.error_code == "INSUFFICIENT_FUNDS"
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("400.00")

    @pytest.mark.parametrize("amount", ["9.99", "150000.01"])
    def test_amount_limits(self, funded_seller, payout_adapter, amount):
        result = _withdraw_seller(funded_seller, amount=amount)

        assert result.error_code == "INVALID_AMOUNT"

    def test_invalid_payout_number(self, funded_seller, payout_adapter):
        result = _withdraw_seller(funded_seller, payout_number="12345")

        assert result.error_code == "INVALID_PAYOUT_NUMBER"

    def test_user_without_seller_profile_is_forbidden(self, payout_adapter):
        buyer = BuyerFactory()

        result = _withdraw_seller(buyer)

        assert result.status_code == 403
        assert result.error_code == "NOT_ENTITY_OWNER"

    def test_event_of_another_organizer_is_not_found(self, funded_event, organizer, payout_adapter):
        foreign_event = EventFactory(balance=Decimal("5000.00"))

        result = WithdrawalService.create_withdrawal(
            organizer.user,
            entity_type=EntityType.EVENT,
            entity_id=foreign_event.pk,
            amount="100.00",
            payout_number="0712345678",
            payout_name="Not mine",
        )

        assert result.status_code == 404
        assert Event.objects.get(pk=foreign_event.pk).balance == Decimal("5000.00")

    def test_event_withdrawal_requires_entity_id(self, organizer, payout_adapter):
        result = WithdrawalService.create_withdrawal(
            organizer.user,
            entity_type=EntityType.EVENT,
            amount="100.00",
            payout_number="0712345678",
            payout_name="Jazz Nights",
        )

        assert result.error_code == "VALIDATION_ERROR"


# =============================================================================
# Compensation
# =============================================================================


@pytest.mark.django_db
class TestPayoutFailure:
    def test_provider_error_recredits_and_fails(self, funded_seller, payout_adapter, mock_redis):
        payout_adapter.initiate_payout.side_effect = ExternalProviderError(
            "payd returned HTTP 503", provider="payd", is_retryable=True
        )

        result = _withdraw_seller(funded_seller)

        assert result.success
        withdrawal = WithdrawalRequest.objects.get(pk=result.data.pk)
        assert withdrawal.status == WithdrawalStatus.FAILED
        assert withdrawal.get_meta("api_error") == "payd returned HTTP 503"
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")
        entry_types = [e.entry_type for e in ledger.entries_for_reference("withdrawal", withdrawal.pk)]
        assert entry_types == [EntryType.DEBIT, EntryType.CREDIT]

    def test_failed_event_withdrawal_refunds_gross(self, funded_event, payout_adapter, mock_redis):
        payout_adapter.initiate_payout.side_effect = ExternalProviderError("timeout", provider="payd", is_retryable=True)

        result = _withdraw_event(funded_event)

        withdrawal = WithdrawalRequest.objects.get(pk=result.data.pk)
        assert withdrawal.status == WithdrawalStatus.FAILED
        assert withdrawal.get_meta("refunded_amount") == "1000.00"
        assert Event.objects.get(pk=funded_event.pk).balance == Decimal("1000.00")

    def test_refused_payout_is_compensated(self, funded_seller, payout_adapter, mock_redis):
        payout_adapter.initiate_payout.return_value = PayoutResult(
            provider_reference="", raw_status="FAILED", message="Number not registered"
        )

        result = _withdraw_seller(funded_seller)

        assert WithdrawalRequest.objects.get(pk=result.data.pk).status == WithdrawalStatus.FAILED
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")

    def test_failed_compensation_is_retried_by_task(self, funded_seller, payout_adapter, mock_redis, mocker):
        payout_adapter.initiate_payout.side_effect = ExternalProviderError("timeout", provider="payd", is_retryable=True)
        mocker.patch.object(WithdrawalService, "compensate", side_effect=DatabaseError("connection lost"))
        delay = mocker.patch("payments.tasks.compensate_withdrawal.delay")

        result = _withdraw_seller(funded_seller)

        assert result.data.status == WithdrawalStatus.PROCESSING
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("500.00")
        delay.assert_called_once_with(str(result.data.pk), "timeout")

    def test_compensate_is_idempotent(self, funded_seller, payout_adapter, mock_redis):
        withdrawal = _withdraw_seller(funded_seller).data

        WithdrawalService.compensate(withdrawal.pk, "first")
        WithdrawalService.compensate(withdrawal.pk, "second")

        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")
        assert BalanceEntry.objects.filter(idempotency_key=f"withdrawal-refund:{withdrawal.pk}").count() == 1

    def test_lock_held_elsewhere_skips_payout(self, funded_seller, payout_adapter, mock_redis, mocker):
        mocker.patch("payments.services.withdrawal_service.PAYOUT_LOCK_TIMEOUT", 0)
        mock_redis.set.return_value = False

        result = _withdraw_seller(funded_seller)

        assert result.data.status == WithdrawalStatus.PROCESSING
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("500.00")
        payout_adapter.initiate_payout.assert_not_called()


# =============================================================================
# Provider callback
# =============================================================================


@pytest.mark.django_db
class TestPayoutCallback:
    def test_success_completes_without_balance_change(self, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-1")

        result = WithdrawalService.handle_payout_callback({"correlator_id": "COR-1", "status": "SUCCESS"})

        assert result.data == ReconcileOutcome.PROCESSED
        refreshed = WithdrawalRequest.objects.get(pk=withdrawal.pk)
        assert refreshed.status == WithdrawalStatus.COMPLETED
        assert refreshed.processed_at is not None
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")

    def test_failure_for_event_recredits_gross(self, funded_event):
        withdrawal = WithdrawalRequestFactory(
            entity_type=EntityType.EVENT,
            seller=None,
            event=funded_event,
            requested_by=funded_event.organizer.user,
            amount=Decimal("940.00"),
            provider_reference="COR-2",
        )

        WithdrawalService.handle_payout_callback(
            {"transaction_id": "COR-2", "status": "FAILED", "status_description": "Insufficient float"}
        )

        refreshed = WithdrawalRequest.objects.get(pk=withdrawal.pk)
        assert refreshed.status == WithdrawalStatus.FAILED
        assert refreshed.get_meta("api_error") == "Insufficient float"
        assert Event.objects.get(pk=funded_event.pk).balance == Decimal("2000.00")

    def test_result_wrapped_in_data_object(self, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-9")

        result = WithdrawalService.handle_payout_callback({"data": {"correlator_id": "COR-9", "status": "SUCCESS"}})

        assert result.data == ReconcileOutcome.PROCESSED
        refreshed = WithdrawalRequest.objects.get(pk=withdrawal.pk)
        assert refreshed.status == WithdrawalStatus.COMPLETED
        assert refreshed.get_meta("callback") == {"data": {"correlator_id": "COR-9", "status": "SUCCESS"}}

    def test_wrapped_failure_keeps_provider_message(self, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, amount=Decimal("200.00"), provider_reference="COR-10")

        WithdrawalService.handle_payout_callback(
            {"data": {"transaction_id": "COR-10", "status": "FAILED", "message": "Invalid account"}}
        )

        refreshed = WithdrawalRequest.objects.get(pk=withdrawal.pk)
        assert refreshed.status == WithdrawalStatus.FAILED
        assert refreshed.get_meta("api_error") == "Invalid account"
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1200.00")

    def test_replay_is_already_processed(self, funded_seller):
        WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-3")
        payload = {"correlator_id": "COR-3", "status": "FAILED"}

        WithdrawalService.handle_payout_callback(payload)
        replay = WithdrawalService.handle_payout_callback(payload)

        assert replay.data == ReconcileOutcome.ALREADY_PROCESSED
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1500.00")

    def test_matches_internal_reference(self, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="")

        WithdrawalService.handle_payout_callback({"reference": withdrawal.reference, "status": "SUCCESS"})

        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.COMPLETED

    def test_non_final_status_is_ignored(self, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-4")

        result = WithdrawalService.handle_payout_callback({"correlator_id": "COR-4", "status": "PENDING"})

        assert result.data == ReconcileOutcome.IGNORED
        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.PROCESSING

    def test_unknown_reference_is_not_found(self, db):
        result = WithdrawalService.handle_payout_callback({"correlator_id": "NOPE", "status": "SUCCESS"})

        assert result.status_code == 404
        assert result.error_code == "WITHDRAWAL_NOT_FOUND"

    def test_missing_reference_is_rejected(self, db):
        result = WithdrawalService.handle_payout_callback({"status": "SUCCESS"})

        assert result.status_code == 400
        assert result.error_code == "MISSING_REFERENCE"


# =============================================================================
# Admin override
# =============================================================================


@pytest.mark.django_db
class TestAdminOverride:
    def test_force_completed(self, funded_seller, admin_user):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller)

        result = WithdrawalService.admin_override(withdrawal.pk, admin_user, WithdrawalStatus.COMPLETED, reason="Paid manually")

        assert result.success
        refreshed = WithdrawalRequest.objects.get(pk=withdrawal.pk)
        assert refreshed.status == WithdrawalStatus.COMPLETED
        assert refreshed.processed_by == admin_user
        assert refreshed.get_meta("admin_reason") == "Paid manually"

    def test_force_failed_recredits(self, funded_seller, admin_user):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, amount=Decimal("250.00"))

        WithdrawalService.admin_override(withdrawal.pk, admin_user, WithdrawalStatus.FAILED, reason="Wrong number")

        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.FAILED
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1250.00")

    def test_terminal_request_is_rejected(self, funded_seller, admin_user):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, status=WithdrawalStatus.COMPLETED)

        result = WithdrawalService.admin_override(withdrawal.pk, admin_user, WithdrawalStatus.FAILED)

        assert result.status_code == 400
        assert result.error_code == "ALREADY_PROCESSED"
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")

    def test_only_terminal_targets_allowed(self, funded_seller, admin_user):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller)

        result = WithdrawalService.admin_override(withdrawal.pk, admin_user, WithdrawalStatus.REJECTED)

        assert result.error_code == "INVALID_STATUS"


# =============================================================================
# Stuck withdrawals
# =============================================================================


@pytest.mark.django_db
class TestReconcileStuckWithdrawals:
    def _age(self, withdrawal, hours):
        WithdrawalRequest.objects.filter(pk=withdrawal.pk).update(created_at=timezone.now() - timedelta(hours=hours))

    def test_flags_each_request_once(self, funded_seller):
        with_reference = WithdrawalRequestFactory(seller=funded_seller)
        without_reference = WithdrawalRequestFactory(seller=funded_seller, provider_reference="")
        fresh = WithdrawalRequestFactory(seller=funded_seller)
        self._age(with_reference, 3)
        self._age(without_reference, 3)

        first = WithdrawalService.reconcile_stuck_withdrawals(hours_ago=2)
        second = WithdrawalService.reconcile_stuck_withdrawals(hours_ago=2)

        assert first == {"checked": 2, "flagged": 2}
        assert second == {"checked": 2, "flagged": 0}
        flags = {
            w.pk: w.get_meta("reconciliation_flag")
            for w in WithdrawalRequest.objects.filter(pk__in=[with_reference.pk, without_reference.pk, fresh.pk])
        }
        assert flags[with_reference.pk] == "needs_manual_review"
        assert flags[without_reference.pk] == "no_provider_reference"
        assert flags[fresh.pk] is None

    def test_ignores_requests_older_than_two_days(self, funded_seller):
        old = WithdrawalRequestFactory(seller=funded_seller)
        self._age(old, 72)

        assert WithdrawalService.reconcile_stuck_withdrawals(hours_ago=2) == {"checked": 0, "flagged": 0}

    def test_keeps_metadata_written_after_the_scan(self, funded_seller, mocker):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller)
        self._age(withdrawal, 3)
        real_atomic = WithdrawalService.atomic

        def callback_lands_first():
            WithdrawalRequest.objects.filter(pk=withdrawal.pk).update(metadata={"callback": {"status": "PENDING"}})
            return real_atomic()

        mocker.patch.object(WithdrawalService, "atomic", side_effect=callback_lands_first)

        WithdrawalService.reconcile_stuck_withdrawals(hours_ago=2)

        refreshed = WithdrawalRequest.objects.get(pk=withdrawal.pk)
        assert refreshed.get_meta("callback") == {"status": "PENDING"}
        assert refreshed.get_meta("reconciliation_flag") == "needs_manual_review"

    def test_skips_request_finished_after_the_scan(self, funded_seller, mocker):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller)
        self._age(withdrawal, 3)
        real_atomic = WithdrawalService.atomic

        def callback_lands_first():
            WithdrawalRequest.objects.filter(pk=withdrawal.pk).update(status=WithdrawalStatus.COMPLETED)
            return real_atomic()

        mocker.patch.object(WithdrawalService, "atomic", side_effect=callback_lands_first)

        assert WithdrawalService.reconcile_stuck_withdrawals(hours_ago=2) == {"checked": 1, "flagged": 0}
        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).get_meta("reconciliation_flag") is None


# =============================================================================
# Concurrency
# =============================================================================


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(connection.vendor != "postgresql", reason="needs row-level locking")
class TestConcurrentWithdrawals:
    """Parallel requests against one balance with real transactions."""

    def test_parallel_requests_cannot_overdraw(self, funded_seller, payout_adapter, mock_redis):
        seller_pk = funded_seller.pk

        def withdraw():
            connection.close()  # Force new connection for thread
            try:
                return _withdraw_seller(Seller.objects.get(pk=seller_pk), amount="600.00")
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(withdraw) for _ in range(2)]
            results = [future.result() for future in as_completed(futures)]

        assert sorted(r.success for r in results) == [False, True]
        assert [r.error_code for r in results if not r.success] == ["INSUFFICIENT_FUNDS"]
        assert Seller.objects.get(pk=seller_pk).balance == Decimal("400.00")
        assert WithdrawalRequest.objects.filter(seller_id=seller_pk).count() == 1
        assert BalanceEntry.objects.filter(holder_id=str(seller_pk), entry_type=EntryType.DEBIT).count() == 1
