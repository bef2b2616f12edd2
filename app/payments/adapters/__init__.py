"""
Adapters for external services.

All outbound calls to the payment gateway and the FX rate source go
through these adapters for consistent timeouts, error translation and
logging.

Usage:
    from payments.adapters import GatewayAdapter, FxRateProvider

    charge = GatewayAdapter.fetch_charge("123456789")
    quote = FxRateProvider.get_quote("ARS", "USDT")
"""

from payments.adapters.fx_rates import FxQuote, FxRateProvider
from payments.adapters.gateway_adapter import (
    ChargeRequest,
    ChargeResult,
    GatewayAdapter,
    PayerInfo,
    PreferenceResult,
)

__all__ = [
    "ChargeRequest",
    "ChargeResult",
    "FxQuote",
    "FxRateProvider",
    "GatewayAdapter",
    "PayerInfo",
    "PreferenceResult",
]
