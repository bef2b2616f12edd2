"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    ├── MerchantNotFound - Merchant lookup failures
    └── InvalidEntrySign - Amount sign does not match the entry type
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class MerchantNotFound(LedgerError):
    default_error_code: str = "MERCHANT_NOT_FOUND"


class InvalidEntrySign(LedgerError):
    """Credits must be positive and debits negative."""

    default_error_code: str = "INVALID_ENTRY_SIGN"
