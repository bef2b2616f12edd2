"""
Tests for LedgerService.

This module tests entry recording, idempotency and balance queries.
"""

import uuid
from decimal import Decimal

import pytest

from payments.ledger.exceptions import InvalidEntrySign, MerchantNotFound
from payments.ledger.models import EntryType, LedgerEntry
from payments.ledger.services import LedgerService
from payments.ledger.types import Money, RecordEntryParams, quantize_money
from payments.models import Merchant
from payments.tests.factories import MerchantFactory, PaymentFactory


def credit(merchant, amount="9.75", key=None, **kwargs):
    return RecordEntryParams(
        merchant_id=merchant.id,
        amount=Decimal(amount),
        entry_type=EntryType.CREDIT_PAYMENT,
        idempotency_key=key or f"test:{uuid.uuid4()}:credit",
        currency="USDT",
        **kwargs,
    )


class TestRecordEntryParams:
    """Tests for RecordEntryParams validation."""

    def test_rejects_zero_amount(self):
        with pytest.raises(ValueError, match="non-zero"):
            RecordEntryParams(
                merchant_id=uuid.uuid4(),
                amount=Decimal("0"),
                entry_type=EntryType.CREDIT_PAYMENT,
                idempotency_key="k",
                currency="USDT",
            )

    def test_requires_idempotency_key(self):
        with pytest.raises(ValueError, match="idempotency_key"):
            RecordEntryParams(
                merchant_id=uuid.uuid4(),
                amount=Decimal("1"),
                entry_type=EntryType.CREDIT_PAYMENT,
                idempotency_key="",
                currency="USDT",
            )

    def test_amount_coerced_to_decimal(self):
        params = RecordEntryParams(
            merchant_id=uuid.uuid4(),
            amount="1.10",
            entry_type=EntryType.CREDIT_PAYMENT,
            idempotency_key="k",
            currency="USDT",
        )

        assert params.amount == Decimal("1.10")


class TestMoney:
    def test_quantized_uses_half_even(self):
        assert Money(Decimal("0.125"), "USDT").quantized(2) == Money(Decimal("0.12"), "USDT")
        assert quantize_money(Decimal("0.135"), 2) == Decimal("0.14")

    def test_str(self):
        assert str(Money("9.75", "USDT")) == "9.75 USDT"


@pytest.mark.django_db
class TestRecordEntry:
    """Tests for LedgerService.record_entry()."""

    def test_creates_entry_and_moves_balance(self):
        """Should append the entry and update the merchant balance."""
        merchant = MerchantFactory()
        payment = PaymentFactory(merchant=merchant)

        entry = LedgerService.record_entry(credit(merchant, payment_id=payment.id, metadata={"fee": "0.25"}))

        assert entry.amount == Decimal("9.75")
        assert entry.balance_after == Decimal("9.75")
        assert entry.payment_id == payment.id
        assert entry.metadata == {"fee": "0.25"}
        assert Merchant.objects.get(pk=merchant.pk).balance == Decimal("9.75")

    def test_balance_after_is_running_total(self):
        """Each entry should record the balance right after it."""
        merchant = MerchantFactory()

        first = LedgerService.record_entry(credit(merchant, "1.50"))
        second = LedgerService.record_entry(credit(merchant, "2.25"))

        assert first.balance_after == Decimal("1.50")
        assert second.balance_after == Decimal("3.75")

    def test_repeated_key_is_idempotent(self):
        """A repeated idempotency key should return the first entry unchanged."""
        merchant = MerchantFactory()

        first = LedgerService.record_entry(credit(merchant, key="payment:abc:credit"))
        again = LedgerService.record_entry(credit(merchant, "100.00", key="payment:abc:credit"))

        assert again.pk == first.pk
        assert LedgerEntry.objects.filter(merchant=merchant).count() == 1
        assert Merchant.objects.get(pk=merchant.pk).balance == Decimal("9.75")

    def test_debit_lowers_balance(self):
        merchant = MerchantFactory()
        LedgerService.record_entry(credit(merchant, "10.00"))

        LedgerService.record_entry(
            RecordEntryParams(
                merchant_id=merchant.id,
                amount=Decimal("-4.00"),
                entry_type=EntryType.DEBIT_PAYOUT,
                idempotency_key="payout:1",
                currency="USDT",
            )
        )

        assert Merchant.objects.get(pk=merchant.pk).balance == Decimal("6.00")

    @pytest.mark.parametrize(
        "entry_type,amount",
        [(EntryType.CREDIT_PAYMENT, "-1.00"), (EntryType.DEBIT_FEE, "1.00")],
    )
    def test_sign_must_match_entry_type(self, entry_type, amount):
        """Credits must be positive and debits negative."""
        merchant = MerchantFactory()

        with pytest.raises(InvalidEntrySign):
            LedgerService.record_entry(
                RecordEntryParams(
                    merchant_id=merchant.id,
                    amount=Decimal(amount),
                    entry_type=entry_type,
                    idempotency_key="signed",
                    currency="USDT",
                )
            )

        assert not LedgerEntry.objects.exists()

    def test_unknown_merchant(self):
        with pytest.raises(MerchantNotFound):
            LedgerService.record_entry(
                RecordEntryParams(
                    merchant_id=uuid.uuid4(),
                    amount=Decimal("1.00"),
                    entry_type=EntryType.CREDIT_PAYMENT,
                    idempotency_key="orphan",
                    currency="USDT",
                )
            )


@pytest.mark.django_db
class TestBalanceQueries:
    """Tests for sum_entries()."""

    def test_sum_equals_stored_balance(self):
        merchant = MerchantFactory()
        for amount in ("1.10", "2.20", "3.30"):
            LedgerService.record_entry(credit(merchant, amount))

        assert LedgerService.sum_entries(merchant.id) == Decimal("6.60")
        assert Merchant.objects.get(pk=merchant.pk).balance == Decimal("6.60")

    def test_sum_entries_without_entries(self):
        merchant = MerchantFactory()

        assert LedgerService.sum_entries(merchant.id) == Decimal("0")
