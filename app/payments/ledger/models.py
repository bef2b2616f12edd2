"""
Ledger models.

LedgerEntry is an append-only movement against a merchant balance in the
settlement currency. Each entry stores balance_after, computed while the
merchant row is locked, so the entries of a merchant read as a running
balance and their sum always equals Merchant.balance.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from payments.ledger.exceptions import LedgerError


class EntryType(models.TextChoices):
    """
    Types of ledger entries.

    CREDIT_* entries carry positive amounts, DEBIT_* entries negative ones.
    Only CREDIT_PAYMENT is written by this service; the others are written
    by payout, refund and dispute tooling.
    """

    CREDIT_PAYMENT = "credit_payment", "Payment Credit"
    DEBIT_FEE = "debit_fee", "Fee Debit"
    DEBIT_PAYOUT = "debit_payout", "Payout Debit"
    CREDIT_REFUND = "credit_refund", "Refund Credit"
    DEBIT_CHARGEBACK = "debit_chargeback", "Chargeback Debit"

    @classmethod
    def is_credit(cls, value: str) -> bool:
        return value.startswith("credit_")


class LedgerEntry(UUIDPrimaryKeyMixin, MetadataMixin, models.Model):
    """
    One balance movement. Never updated or deleted; reversals are new entries.

    Fields:
        merchant: Merchant whose balance moved
        payment: Payment that caused the movement, if any
        entry_type: Category of movement
        amount: Signed amount in the settlement currency
        balance_after: Merchant balance right after this entry
        currency: Settlement currency
        description: Human-readable description
        idempotency_key: Unique key preventing duplicate entries

    Example:
        LedgerService.record_entry(RecordEntryParams(
            merchant_id=merchant.id,
            amount=Decimal("0.78"),
            entry_type=EntryType.CREDIT_PAYMENT,
            idempotency_key=f"payment:{payment.id}:credit",
            currency="USDT",
        ))
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When this entry was recorded",
    )
    merchant = models.ForeignKey(
        "payments.Merchant",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
        null=True,
        blank=True,
    )
    entry_type = models.CharField(
        max_length=30,
        choices=EntryType.choices,
    )
    amount = models.DecimalField(
        max_digits=20,
        decimal_places=6,
        help_text="Signed amount: positive credits, negative debits",
    )
    balance_after = models.DecimalField(
        max_digits=20,
        decimal_places=6,
        help_text="Merchant balance after applying this entry",
    )
    currency = models.CharField(max_length=10)
    description = models.TextField(blank=True)
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["merchant", "created_at"], name="ledger_merchant_created_idx"),
            models.Index(fields=["entry_type"], name="ledger_entry_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="ledger_entry_amount_non_zero",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_entry_type_display()}: {self.amount} {self.currency}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerError(
                "Ledger entries are append-only",
                details={"ledger_entry_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerError(
            "Ledger entries are append-only",
            details={"ledger_entry_id": str(self.pk)},
        )
