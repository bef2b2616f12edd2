"""
State enums for payment models.
"""

from payments.state_machines.states import (
    ChargeStatus,
    Currency,
    GatewayEventSource,
    MerchantEventType,
    OrderStatus,
    PaymentStatus,
)

__all__ = [
    "ChargeStatus",
    "Currency",
    "GatewayEventSource",
    "MerchantEventType",
    "OrderStatus",
    "PaymentStatus",
]
