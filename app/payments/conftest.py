"""
Pytest fixtures shared by the payments test packages.

Fixtures provide merchants, orders and payments in the states the
confirmation engine, the entry points and the sweepers care about, plus
builders for gateway charges and a fixed FX quote.

Usage:
    def test_confirms_payment(order_payment, charge_for, fx_quote):
        result = ConfirmationEngine.apply_charge(order_payment.id, charge_for(order_payment))
        assert result.outcome == ConfirmationOutcome.CONFIRMED
"""

from decimal import Decimal

import pytest
from django.utils import timezone

from payments.adapters import ChargeResult, FxQuote, FxRateProvider
from payments.state_machines import ChargeStatus, PaymentStatus
from payments.tests.factories import (
    MerchantFactory,
    MerchantWebhookFactory,
    OrderFactory,
    PaymentFactory,
)


# =============================================================================
# Merchant and Order Fixtures
# =============================================================================


@pytest.fixture
def merchant(db):
    """Merchant with a 2.5% fee."""
    return MerchantFactory()


@pytest.fixture
def order(db, merchant):
    """Order for 10000.00 ARS awaiting payment."""
    return OrderFactory(merchant=merchant)


@pytest.fixture
def order_payment(db, order):
    """CREATED payment settling the order."""
    return PaymentFactory(
        merchant=order.merchant,
        order=order,
        amount=order.total_amount,
        currency=order.currency,
    )


@pytest.fixture
def pending_payment(db, order):
    """PENDING payment settling the order."""
    return PaymentFactory(
        merchant=order.merchant,
        order=order,
        amount=order.total_amount,
        currency=order.currency,
        status=PaymentStatus.PENDING,
    )


@pytest.fixture
def webhook(db, merchant):
    """Merchant subscription to payment events."""
    return MerchantWebhookFactory(merchant=merchant)


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def charge_for():
    """
    Build the ChargeResult the gateway would report for a payment.

    Usage:
        charge = charge_for(payment, status=ChargeStatus.REJECTED,
                            status_detail="cc_rejected_high_risk")
    """

    def build(
        payment,
        status=ChargeStatus.APPROVED,
        status_detail="accredited",
        amount=None,
        currency=None,
        charge_id="123456789",
    ) -> ChargeResult:
        amount = payment.amount if amount is None else Decimal(str(amount))
        data = {
            "id": int(charge_id),
            "status": str(status),
            "status_detail": status_detail,
            "transaction_amount": float(amount),
            "currency_id": currency or payment.currency,
            "external_reference": str(payment.order_id or payment.id),
            "metadata": {"payment_id": str(payment.id), "merchant_id": str(payment.merchant_id)},
        }
        return ChargeResult.from_response(data)

    return build


@pytest.fixture
def ars_quote():
    """1000 ARS per USDT."""
    return FxQuote("ARS", "USDT", Decimal("0.0010000000"), "test", timezone.now())


@pytest.fixture
def fx_quote(mocker, ars_quote):
    """Patch the FX lookup to return ars_quote."""
    return mocker.patch.object(FxRateProvider, "get_quote", return_value=ars_quote)


@pytest.fixture
def merchant_events(mocker):
    """Capture merchant events queued for dispatch."""
    from payments.tasks import dispatch_merchant_event

    return mocker.patch.object(dispatch_merchant_event, "delay")


# =============================================================================
# Mock Redis Fixture (for lock tests)
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured for basic lock operations.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.eval.return_value = 1

    mocker.patch("payments.locks.get_redis_connection", return_value=mock_client)

    return mock_client


# =============================================================================
# API Client Fixture
# =============================================================================


@pytest.fixture
def api_client():
    """Anonymous DRF client, like the public checkout page."""
    from rest_framework.test import APIClient

    return APIClient()
