"""
Payment services.

This module provides:
- ConfirmationEngine: Applies verified gateway charges (confirm, pend, fail)
- WebhookDispatcher: Signs and delivers merchant events
- PreferenceIssuer: Hosted checkout entry point
- DirectChargeHandler: Synchronous card charge entry point
- ExpirationService: Expires overdue payments and their orders

Usage:
    from payments.services import ConfirmationEngine

    result = ConfirmationEngine.apply_charge(payment.id, charge)
"""

from payments.services.confirmation import (
    ConfirmationEngine,
    ConfirmationOutcome,
    ConfirmationResult,
    calculate_settlement,
)
from payments.services.direct_charge import (
    DirectChargeHandler,
    DirectChargeRequest,
    DirectChargeResult,
)
from payments.services.expiration import ExpirationService
from payments.services.merchant_webhooks import (
    WebhookDispatcher,
    build_payment_event,
    canonical_json,
    compute_next_retry_at,
    sign_payload,
)
from payments.services.preference_issuer import PreferenceIssuer

__all__ = [
    # Confirmation
    "ConfirmationEngine",
    "ConfirmationOutcome",
    "ConfirmationResult",
    "calculate_settlement",
    # Entry points
    "DirectChargeHandler",
    "DirectChargeRequest",
    "DirectChargeResult",
    "PreferenceIssuer",
    # Expiration
    "ExpirationService",
    # Merchant webhooks
    "WebhookDispatcher",
    "build_payment_event",
    "canonical_json",
    "compute_next_retry_at",
    "sign_payload",
]
