"""
Data types for ledger operations.

Money amounts are Decimal end to end. Binary floats never enter the
ledger: values coming from JSON are converted through str() first.

Types:
    Money: Decimal amount with its currency
    RecordEntryParams: Parameters for appending a ledger entry

Usage:
    from payments.ledger.types import Money, quantize_money

    net = quantize_money(Decimal("0.805"), places=2)  # Decimal("0.80")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any


def to_decimal(value: Any) -> Decimal:
    """Convert an int, str, float or Decimal to Decimal without float drift."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(amount: Decimal, places: int) -> Decimal:
    """Round to the given number of decimal places using round-half-even."""
    return to_decimal(amount).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class Money:
    """
    A monetary amount.

    Attributes:
        amount: Decimal amount, negative for debits
        currency: Currency code (ISO 4217, or USDT for settlement)
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def quantized(self, places: int) -> Money:
        return Money(quantize_money(self.amount, places), self.currency)


@dataclass
class RecordEntryParams:
    """
    Parameters for appending one ledger entry.

    Attributes:
        merchant_id: Merchant whose balance moves
        amount: Signed amount, positive for credits and negative for debits
        entry_type: EntryType value
        idempotency_key: Unique key, a repeated key returns the existing entry
        currency: Settlement currency of the balance
        payment_id: Payment the movement belongs to, if any
        description: Human-readable description
        metadata: Extra context (gross, fee, rate)
    """

    merchant_id: uuid.UUID
    amount: Decimal
    entry_type: str
    idempotency_key: str
    currency: str
    payment_id: uuid.UUID | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)
        if self.amount == 0:
            raise ValueError("Ledger entry amount must be non-zero")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
