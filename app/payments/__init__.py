"""
Payments app: payment confirmation and merchant webhook fan-out.

This app handles:
- Orders and payments with an immutable amount snapshot
- Hosted checkout preferences and direct card charges via the gateway
- Gateway callbacks, verified and confirmed from the fetched charge
- Settlement in USDT with an FX snapshot and a merchant ledger credit
- Signed merchant webhooks with retry
- Expiration of overdue payments and orders

Related apps:
    - core: Base models, ServiceResult, exception hierarchy

Usage:
    from payments.services import ConfirmationEngine, PreferenceIssuer

    preference = PreferenceIssuer.issue(payment.id)
    result = ConfirmationEngine.apply_charge(payment.id, charge)
"""
