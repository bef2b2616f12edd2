"""
Tests for payment model invariants.

State changes themselves are covered through the guard and the services;
here we check what the models refuse on their own.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from payments.exceptions import PaymentValidationError
from payments.models import GatewayEvent, Payment
from payments.state_machines import GatewayEventSource, OrderStatus, PaymentStatus
from payments.tests.factories import (
    FXSnapshotFactory,
    MerchantWebhookFactory,
    OrderFactory,
    PaymentFactory,
)


@pytest.mark.django_db
class TestPaymentSnapshot:
    def test_amount_cannot_change_after_creation(self):
        payment = PaymentFactory()
        payment = Payment.objects.get(pk=payment.pk)

        payment.amount = Decimal("1.00")

        with pytest.raises(PaymentValidationError, match="snapshot"):
            payment.save()

    def test_currency_cannot_change_after_creation(self):
        payment = Payment.objects.get(pk=PaymentFactory().pk)

        payment.currency = "BRL"

        with pytest.raises(PaymentValidationError):
            payment.save()

    def test_other_fields_can_be_saved(self):
        payment = Payment.objects.get(pk=PaymentFactory().pk)

        payment.customer_email = "changed@example.com"
        payment.save()

        fresh = Payment.objects.get(pk=payment.pk)
        assert fresh.customer_email == "changed@example.com"
        assert fresh.version == 2

    def test_defaults(self):
        payment = PaymentFactory()

        assert payment.status == PaymentStatus.CREATED
        assert payment.idempotency_key.startswith("pay_")
        assert payment.expires_at > payment.created_at
        assert payment.is_terminal is False

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(amount=Decimal("0"))

    def test_order_allows_one_open_payment(self):
        order = OrderFactory()
        PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount)

        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(
                merchant=order.merchant, order=order, amount=order.total_amount, status=PaymentStatus.PENDING
            )

    def test_closed_payments_do_not_block_a_new_attempt(self):
        order = OrderFactory()
        PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount, failed=True)
        PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount, expired=True)

        PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount)

        assert Payment.objects.filter(order=order).count() == 3


@pytest.mark.django_db
class TestPaymentTransitions:
    def test_status_cannot_be_assigned_directly(self):
        payment = PaymentFactory()

        with pytest.raises(AttributeError):
            payment.status = PaymentStatus.CONFIRMED

    def test_terminal_payment_cannot_be_submitted(self):
        payment = PaymentFactory(failed=True)

        with pytest.raises(TransitionNotAllowed):
            payment.submit()

    def test_confirmed_payment_cannot_expire(self):
        payment = PaymentFactory(confirmed=True)

        with pytest.raises(TransitionNotAllowed):
            payment.expire(expired_at=payment.confirmed_at)

    def test_confirmed_status_requires_settlement(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(status=PaymentStatus.CONFIRMED)

    def test_confirmed_trait_satisfies_constraint(self):
        payment = PaymentFactory(confirmed=True)

        assert payment.is_terminal is True
        assert payment.amount_settlement_net == Decimal("9.75")


@pytest.mark.django_db
class TestOrder:
    def test_defaults_to_pending_payment(self):
        order = OrderFactory()

        assert order.status == OrderStatus.PENDING_PAYMENT
        assert order.version == 1

    def test_paid_order_cannot_expire(self):
        order = OrderFactory(status=OrderStatus.PAID)

        with pytest.raises(TransitionNotAllowed):
            order.expire(None)


@pytest.mark.django_db
class TestAppendOnlyRecords:
    def test_fx_snapshot_is_immutable(self):
        snapshot = FXSnapshotFactory()
        snapshot.rate = Decimal("0.002")

        with pytest.raises(PaymentValidationError):
            snapshot.save()

    def test_gateway_event_cannot_be_updated_or_deleted(self):
        event = GatewayEvent.record(
            source=GatewayEventSource.CALLBACK,
            event_type="callback.payment",
            payload={"data": {"id": "1"}},
            provider_charge_id=1,
        )

        assert event.provider_charge_id == "1"
        with pytest.raises(PaymentValidationError):
            event.save()
        with pytest.raises(PaymentValidationError):
            event.delete()


@pytest.mark.django_db
class TestMerchantWebhook:
    def test_secret_is_generated(self):
        webhook = MerchantWebhookFactory()

        assert webhook.secret_key.startswith("whsec_")
        assert len(webhook.secret_key) == len("whsec_") + 64

    def test_subscription_filter(self):
        webhook = MerchantWebhookFactory(events=["payment.confirmed"])

        assert webhook.is_subscribed_to("payment.confirmed") is True
        assert webhook.is_subscribed_to("payment.failed") is False
