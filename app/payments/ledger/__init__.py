"""
Ledger - append-only merchant balance movements.

Public API:
    Models (payments.ledger.models): LedgerEntry, EntryType
    Service (payments.ledger.services): LedgerService, ledger
    Types: Money, RecordEntryParams, quantize_money
    Exceptions: LedgerError, MerchantNotFound, InvalidEntrySign

Models and services are imported from their modules directly; this
package only re-exports the dependency-free parts so importing
payments.ledger.models from payments.models stays cycle-free.
"""

from .exceptions import InvalidEntrySign, LedgerError, MerchantNotFound
from .types import Money, RecordEntryParams, quantize_money, to_decimal

__all__ = [
    "InvalidEntrySign",
    "LedgerError",
    "MerchantNotFound",
    "Money",
    "RecordEntryParams",
    "quantize_money",
    "to_decimal",
]
