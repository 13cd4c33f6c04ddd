"""
Tests for BalanceEntry immutability.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError

from payments.ledger.models import BalanceEntry, EntryType


def make_entry(**overrides):
    values = {
        "holder_type": "seller",
        "holder_id": "1",
        "entry_type": EntryType.CREDIT,
        "amount": Decimal("10.00"),
        "balance_after": Decimal("10.00"),
        "reason": "test",
    }
    values.update(overrides)
    return BalanceEntry.objects.create(**values)


@pytest.mark.django_db
class TestBalanceEntry:
    def test_entry_cannot_be_updated(self):
        entry = make_entry()
        entry.reason = "changed"

        with pytest.raises(ValueError, match="append-only"):
            entry.save()

    def test_entry_cannot_be_deleted(self):
        entry = make_entry()

        with pytest.raises(ValueError, match="append-only"):
            entry.delete()

        assert BalanceEntry.objects.filter(pk=entry.pk).exists()

    def test_idempotency_key_is_unique(self):
        make_entry(idempotency_key="escrow:abc")

        with pytest.raises(IntegrityError):
            make_entry(idempotency_key="escrow:abc")

    def test_entries_without_key_do_not_collide(self):
        make_entry()
        make_entry()

        assert BalanceEntry.objects.count() == 2
