"""
Payment domain models.

- Merchant: Business receiving payments, owns the settlement balance
- Order: E-commerce order settled by a Payment
- Payment: One attempted charge, the record every entry point mutates
- FXSnapshot: Immutable rate captured at confirmation
- GatewayEvent: Append-only audit log of gateway traffic
- MerchantWebhook / WebhookDelivery: Outbound merchant notifications
- LedgerEntry: Append-only balance movements (defined in payments.ledger)
"""

from payments.ledger.models import EntryType, LedgerEntry
from payments.models.fx_snapshot import FXSnapshot
from payments.models.gateway_event import GatewayEvent
from payments.models.merchant import Merchant
from payments.models.merchant_webhook import MerchantWebhook, WebhookDelivery
from payments.models.order import Order
from payments.models.payment import Payment

__all__ = [
    "EntryType",
    "FXSnapshot",
    "GatewayEvent",
    "LedgerEntry",
    "Merchant",
    "MerchantWebhook",
    "Order",
    "Payment",
    "WebhookDelivery",
]
