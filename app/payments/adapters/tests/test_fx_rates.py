"""
Tests for the FX rate provider.
"""

from decimal import Decimal

import httpx
import pytest
from django.utils import timezone

from payments.adapters import FxQuote, FxRateProvider
from payments.exceptions import RateUnavailable


class TestFxQuote:
    def test_convert_is_unrounded(self):
        quote = FxQuote("ARS", "USDT", Decimal("0.0010000000"), "test", timezone.now())

        assert quote.convert(Decimal("1234.56")) == Decimal("1.234560000000")

    def test_rate_inverse(self):
        quote = FxQuote("ARS", "USDT", Decimal("0.0008"), "test", timezone.now())

        assert quote.rate_inverse == Decimal("1250.0000000000")


class TestGetQuote:
    def test_same_currency_is_identity(self, rate_transport):
        quote = FxRateProvider.get_quote("USDT", "USDT")

        assert quote.rate == Decimal(1)
        assert quote.source == "identity"
        assert rate_transport.requests == []

    def test_fixed_rate(self, rate_transport):
        quote = FxRateProvider.get_quote("USD", "USDT")

        assert quote.rate == Decimal("1")
        assert quote.source == "fixed"
        assert rate_transport.requests == []

    def test_fetched_rate_is_inverse_of_price(self, rate_transport, settings):
        settings.FX_RATE_ASSET_ID = "tether"
        settings.FX_RATE_SOURCE_NAME = "coingecko"
        rate_transport.reply(200, json={"tether": {"ars": 1250}})

        quote = FxRateProvider.get_quote("ARS", "USDT")

        request = rate_transport.requests[0]
        assert request.url.host == "rates.test"
        assert request.url.params["ids"] == "tether"
        assert request.url.params["vs_currencies"] == "ars"
        assert quote.rate == Decimal("0.0008000000")
        assert quote.source == "coingecko"

    def test_unknown_settlement_currency(self, rate_transport):
        with pytest.raises(RateUnavailable):
            FxRateProvider.get_quote("ARS", "EUR")

        assert rate_transport.requests == []

    @pytest.mark.parametrize(
        "reply",
        [
            httpx.Response(503, text="down"),
            httpx.Response(200, json={"tether": {}}),
            httpx.Response(200, json={"tether": {"ars": 0}}),
            httpx.Response(200, text="<html>"),
        ],
    )
    def test_bad_source_reply_rejects(self, rate_transport, settings, reply):
        settings.FX_RATE_ASSET_ID = "tether"
        rate_transport.replies.append(reply)

        with pytest.raises(RateUnavailable):
            FxRateProvider.get_quote("ARS", "USDT")

    def test_network_error_rejects(self, rate_transport):
        rate_transport.fail(httpx.ConnectError("refused"))

        with pytest.raises(RateUnavailable):
            FxRateProvider.get_quote("ARS", "USDT")

    def test_fallback_policy_uses_configured_rate(self, rate_transport, settings):
        settings.FX_FALLBACK_POLICY = "fallback"
        settings.FX_FALLBACK_RATES = {"ARS:USDT": "0.0009"}
        rate_transport.fail(httpx.ConnectError("refused"))

        quote = FxRateProvider.get_quote("ARS", "USDT")

        assert quote.rate == Decimal("0.0009")
        assert quote.source == "fallback"

    def test_fallback_policy_without_rate_still_rejects(self, rate_transport, settings):
        settings.FX_FALLBACK_POLICY = "fallback"
        rate_transport.fail(httpx.ConnectError("refused"))

        with pytest.raises(RateUnavailable):
            FxRateProvider.get_quote("BRL", "USDT")
