"""
Balance ledger operations.

Every balance mutation goes through LedgerService. The caller opens the
transaction and locks the holder with lock_holder(); credit() and debit()
then update the column with an F() expression and append a BalanceEntry.

Lock ordering: an Order row is always locked before any balance row.
Withdrawals lock only the balance row.

Usage:
    from payments.ledger import ledger

    with transaction.atomic():
        seller = ledger.lock_holder("seller", seller_id)
        ledger.debit(
            seller,
            Decimal("500.00"),
            reason="withdrawal",
            reference_type="withdrawal",
            reference_id=str(withdrawal.id),
        )
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import F

from accounts.models import Buyer, EntityType, Event, Organizer, Seller
from core.exceptions import NotFoundError, ValidationError
from payments.exceptions import InsufficientFundsError
from payments.money import round2

from .models import BalanceEntry, EntryType

if TYPE_CHECKING:
    from accounts.models import BalanceHolder

logger = logging.getLogger(__name__)

HOLDER_MODELS = {
    EntityType.SELLER: Seller,
    EntityType.ORGANIZER: Organizer,
    EntityType.EVENT: Event,
    Buyer.entity_type: Buyer,
}


class LedgerService:
    """
    Locked, audited balance mutations.

    All methods are static; no instance state is kept.
    """

    @staticmethod
    def lock_holder(entity_type: str, entity_id, owner: Organizer | None = None) -> BalanceHolder:
        """
        Load a balance holder with SELECT ... FOR UPDATE.

        Must run inside a transaction; the lock is held until it ends.

        Args:
            entity_type: seller, organizer, event or buyer
            entity_id: Primary key of the holder
            owner: For events, restrict the lookup to this organizer

        Raises:
            ValidationError: Unknown entity type
            NotFoundError: Holder absent, or event not owned by owner
        """
        model = HOLDER_MODELS.get(entity_type)
        if model is None:
            raise ValidationError(
                f"Unknown entity type: {entity_type}",
                error_code="INVALID_ENTITY_TYPE",
                details={"entity_type": entity_type},
            )

        queryset = model.objects.select_for_update()
        if entity_type == EntityType.EVENT and owner is not None:
            queryset = queryset.filter(organizer=owner)

        try:
            return queryset.get(pk=entity_id)
        except (model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f"{model.__name__} {entity_id} not found",
                error_code=f"{model.__name__.upper()}_NOT_FOUND",
                details={"entity_type": entity_type, "entity_id": str(entity_id)},
            )

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        amount = round2(amount)
        if amount <= 0:
            raise ValidationError(
                "Amount must be positive",
                error_code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )
        return amount

    @staticmethod
    def _already_applied(idempotency_key: str | None) -> bool:
        return bool(idempotency_key) and BalanceEntry.objects.filter(
            idempotency_key=idempotency_key
        ).exists()

    @staticmethod
    def _apply(
        holder: BalanceHolder,
        amount: Decimal,
        entry_type: str,
        reason: str,
        reference_type: str,
        reference_id: str,
        idempotency_key: str | None,
    ) -> Decimal:
        field = holder.balance_field
        delta = amount if entry_type == EntryType.CREDIT else -amount

        type(holder).objects.filter(pk=holder.pk).update(**{field: F(field) + delta})
        holder.refresh_from_db(fields=[field])
        balance_after = holder.get_balance()

        BalanceEntry.objects.create(
            holder_type=holder.entity_type,
            holder_id=str(holder.pk),
            field=field,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance_after,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key or None,
        )

        logger.info(
            f"Ledger {entry_type} {amount} on {holder.entity_type}:{holder.pk}",
            extra={
                "holder_type": holder.entity_type,
                "holder_id": str(holder.pk),
                "entry_type": entry_type,
                "amount": str(amount),
                "balance_after": str(balance_after),
                "reason": reason,
                "reference_type": reference_type,
                "reference_id": reference_id,
            },
        )
        return balance_after

    @staticmethod
    def credit(
        holder: BalanceHolder,
        amount,
        *,
        reason: str,
        reference_type: str = "",
        reference_id: str = "",
        idempotency_key: str | None = None,
    ) -> Decimal:
        """
        Add amount to a locked holder's balance.

        A repeated idempotency_key leaves the balance untouched and returns
        the current value.

        Returns:
            Balance after the credit
        """
        amount = LedgerService._validate_amount(amount)
        with transaction.atomic():
            if LedgerService._already_applied(idempotency_key):
                logger.info(
                    f"Ledger credit skipped, key already applied: {idempotency_key}",
                    extra={"idempotency_key": idempotency_key},
                )
                return holder.get_balance()
            return LedgerService._apply(
                holder,
                amount,
                EntryType.CREDIT,
                reason,
                reference_type,
                str(reference_id),
                idempotency_key,
            )

    @staticmethod
    def debit(
        holder: BalanceHolder,
        amount,
        *,
        reason: str,
        reference_type: str = "",
        reference_id: str = "",
        idempotency_key: str | None = None,
    ) -> Decimal:
        """
        Subtract amount from a locked holder's balance.

        Raises:
            InsufficientFundsError: amount exceeds the balance; nothing changes

        Returns:
            Balance after the debit
        """
        amount = LedgerService._validate_amount(amount)
        with transaction.atomic():
            if LedgerService._already_applied(idempotency_key):
                return holder.get_balance()

            available = holder.get_balance()
            if amount > available:
                raise InsufficientFundsError(required=amount, available=available)

            return LedgerService._apply(
                holder,
                amount,
                EntryType.DEBIT,
                reason,
                reference_type,
                str(reference_id),
                idempotency_key,
            )

    @staticmethod
    def entries_for_reference(reference_type: str, reference_id) -> list[BalanceEntry]:
        """All entries caused by one entity, oldest first."""
        return list(
            BalanceEntry.objects.filter(
                reference_type=reference_type,
                reference_id=str(reference_id),
            ).order_by("created_at", "id")
        )


# Usage: from payments.ledger import ledger
ledger = LedgerService()
