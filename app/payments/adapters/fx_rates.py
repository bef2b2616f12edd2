"""
FX rate provider for settlement conversion.

Payments are priced in a local currency (ARS, BRL, USD) and credited to
merchants in the settlement currency (USDT). The rate is looked up at
confirmation time and frozen into an FXSnapshot.

Lookup order:
1. Same currency: rate 1
2. FX_FIXED_RATES: configured pegs, e.g. {"USD:USDT": "1"}
3. Price API (CoinGecko simple/price): price of FX_RATE_ASSET_ID in the
   local currency; the rate is its inverse
4. On failure, FX_FALLBACK_POLICY decides: "reject" raises RateUnavailable,
   "fallback" uses FX_FALLBACK_RATES and logs a warning

Usage:
    from payments.adapters.fx_rates import FxRateProvider

    quote = FxRateProvider.get_quote("ARS", "USDT")
    gross = quote.convert(Decimal("1000.00"))
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

import httpx
from django.conf import settings
from django.utils import timezone

from payments.exceptions import RateUnavailable
from payments.ledger.types import to_decimal

RATE_PLACES = Decimal("0.0000000001")


@dataclass(frozen=True)
class FxQuote:
    """
    A rate observation.

    Attributes:
        from_currency: Local currency
        to_currency: Settlement currency
        rate: to_currency per one unit of from_currency
        source: identity, fixed, provider name or fallback
        captured_at: When the rate was observed
    """

    from_currency: str
    to_currency: str
    rate: Decimal
    source: str
    captured_at: datetime

    @property
    def rate_inverse(self) -> Decimal:
        return (Decimal(1) / self.rate).quantize(RATE_PLACES)

    def convert(self, amount: Decimal) -> Decimal:
        """Unrounded conversion; callers round to the settlement precision."""
        return to_decimal(amount) * self.rate


class FxRateProvider:
    """Looks up conversion rates. Stateless; all methods are classmethods."""

    transport: httpx.BaseTransport | None = None

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def get_quote(cls, from_currency: str, to_currency: str) -> FxQuote:
        """
        Return the current rate from from_currency to to_currency.

        Raises:
            RateUnavailable: If no rate could be obtained and the fallback
                policy does not supply one
        """
        now = timezone.now()
        if from_currency == to_currency:
            return FxQuote(from_currency, to_currency, Decimal(1), "identity", now)

        fixed = settings.FX_FIXED_RATES.get(f"{from_currency}:{to_currency}")
        if fixed is not None:
            return FxQuote(from_currency, to_currency, to_decimal(fixed), "fixed", now)

        try:
            rate = cls._fetch_rate(from_currency, to_currency)
            return FxQuote(from_currency, to_currency, rate, settings.FX_RATE_SOURCE_NAME, now)
        except RateUnavailable:
            fallback = settings.FX_FALLBACK_RATES.get(f"{from_currency}:{to_currency}")
            if settings.FX_FALLBACK_POLICY == "fallback" and fallback is not None:
                cls.get_logger().warning(
                    "Using fallback FX rate",
                    extra={"from_currency": from_currency, "to_currency": to_currency, "rate": fallback},
                )
                return FxQuote(from_currency, to_currency, to_decimal(fallback), "fallback", now)
            raise

    @classmethod
    def _fetch_rate(cls, from_currency: str, to_currency: str) -> Decimal:
        logger = cls.get_logger()
        log_context = {"from_currency": from_currency, "to_currency": to_currency}

        if to_currency != settings.SETTLEMENT_CURRENCY:
            raise RateUnavailable(
                f"No rate source for {from_currency}->{to_currency}",
                details=log_context,
            )

        asset_id = settings.FX_RATE_ASSET_ID
        vs_currency = from_currency.lower()
        start_time = time.monotonic()
        try:
            with httpx.Client(timeout=settings.FX_RATE_TIMEOUT_SECONDS, transport=cls.transport) as client:
                response = client.get(
                    settings.FX_RATE_API_URL,
                    params={"ids": asset_id, "vs_currencies": vs_currency},
                )
                response.raise_for_status()
                price = response.json()[asset_id][vs_currency]
            local_per_unit = to_decimal(price)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, InvalidOperation) as e:
            logger.warning("FX rate lookup failed", extra={**log_context, "error": str(e)})
            raise RateUnavailable(
                f"Rate lookup failed for {from_currency}->{to_currency}",
                details=log_context,
            ) from e

        if local_per_unit <= 0:
            raise RateUnavailable(
                f"Rate provider returned a non-positive price for {from_currency}",
                details={**log_context, "price": str(local_per_unit)},
            )

        rate = (Decimal(1) / local_per_unit).quantize(RATE_PLACES)
        logger.info(
            "FX rate fetched",
            extra={**log_context, "rate": str(rate), "duration_ms": (time.monotonic() - start_time) * 1000},
        )
        return rate
