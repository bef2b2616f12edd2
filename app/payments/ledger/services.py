"""
Ledger service layer.

All ledger writes go through LedgerService so that the entry insert and
the Merchant.balance update happen under one row lock, inside the
caller's transaction.

Usage:
    from payments.ledger.services import LedgerService
    from payments.ledger.types import RecordEntryParams

    entry = LedgerService.record_entry(RecordEntryParams(
        merchant_id=payment.merchant_id,
        amount=net,
        entry_type=EntryType.CREDIT_PAYMENT,
        idempotency_key=f"payment:{payment.id}:credit",
        currency="USDT",
        payment_id=payment.id,
    ))
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Sum

from payments.ledger.exceptions import InvalidEntrySign, MerchantNotFound
from payments.ledger.models import EntryType, LedgerEntry
from payments.ledger.types import RecordEntryParams
from payments.models import Merchant

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Append-only merchant balance bookkeeping.

    All methods are static.
    """

    @staticmethod
    def record_entry(params: RecordEntryParams) -> LedgerEntry:
        """
        Append one entry and move the merchant balance.

        Idempotent: a repeated idempotency_key returns the existing entry
        without touching the balance.

        Args:
            params: Entry parameters

        Returns:
            The created (or previously created) LedgerEntry

        Raises:
            MerchantNotFound: If the merchant does not exist
            InvalidEntrySign: If the amount sign does not match entry_type
        """
        is_credit = EntryType.is_credit(params.entry_type)
        if is_credit != (params.amount > 0):
            raise InvalidEntrySign(
                f"{params.entry_type} entries must be {'positive' if is_credit else 'negative'}",
                details={"entry_type": params.entry_type, "amount": str(params.amount)},
            )

        with transaction.atomic():
            merchant = Merchant.objects.select_for_update().filter(pk=params.merchant_id).first()
            if merchant is None:
                raise MerchantNotFound(
                    f"Merchant {params.merchant_id} not found",
                    details={"merchant_id": str(params.merchant_id)},
                )

            existing = LedgerEntry.objects.filter(idempotency_key=params.idempotency_key).first()
            if existing is not None:
                logger.info(
                    "Ledger entry already recorded",
                    extra={"idempotency_key": params.idempotency_key, "entry_id": str(existing.id)},
                )
                return existing

            balance_after = merchant.balance + params.amount
            try:
                with transaction.atomic():
                    entry = LedgerEntry.objects.create(
                        merchant=merchant,
                        payment_id=params.payment_id,
                        entry_type=params.entry_type,
                        amount=params.amount,
                        balance_after=balance_after,
                        currency=params.currency,
                        description=params.description,
                        metadata=params.metadata,
                        idempotency_key=params.idempotency_key,
                    )
            except IntegrityError:
                # Lost an insert race on the unique key; the winner moved the balance.
                return LedgerEntry.objects.get(idempotency_key=params.idempotency_key)

            Merchant.objects.filter(pk=merchant.pk).update(balance=balance_after)

        logger.info(
            "Ledger entry recorded",
            extra={
                "entry_id": str(entry.id),
                "merchant_id": str(params.merchant_id),
                "entry_type": params.entry_type,
                "amount": str(params.amount),
                "balance_after": str(balance_after),
            },
        )
        return entry

    @staticmethod
    def sum_entries(merchant_id: uuid.UUID) -> Decimal:
        """Sum of all entries for a merchant; equals the stored balance."""
        total = LedgerEntry.objects.filter(merchant_id=merchant_id).aggregate(total=Sum("amount"))["total"]
        return total if total is not None else Decimal("0")
