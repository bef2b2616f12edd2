"""
Factory Boy factories for payment test data.

Usage:
    from payments.tests.factories import OrderFactory, PaymentFactory

    # Payment for an order, amount copied from the order total
    order = OrderFactory(total_amount=Decimal("2500.00"))
    payment = PaymentFactory(order=order, merchant=order.merchant, amount=order.total_amount)

    # Payment created directly in a given state
    payment = PaymentFactory(status=PaymentStatus.PENDING)
    payment = PaymentFactory(confirmed=True)
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from payments.models import (
    FXSnapshot,
    GatewayEvent,
    Merchant,
    MerchantWebhook,
    Order,
    Payment,
    WebhookDelivery,
)
from payments.state_machines import (
    Currency,
    GatewayEventSource,
    MerchantEventType,
    PaymentStatus,
)


class MerchantFactory(factory.django.DjangoModelFactory):
    """Active merchant with a 2.5% platform fee."""

    class Meta:
        model = Merchant

    name = factory.Sequence(lambda n: f"Merchant {n}")
    email = factory.Sequence(lambda n: f"merchant{n}@example.com")
    fee_percentage = Decimal("2.50")
    default_currency = Currency.ARS
    is_active = True


class OrderFactory(factory.django.DjangoModelFactory):
    """
    Order awaiting payment.

    Note: status is managed by FSM; pass status= only to create an order
    directly in a given state.
    """

    class Meta:
        model = Order

    merchant = factory.SubFactory(MerchantFactory)
    customer_name = factory.Faker("name")
    customer_email = factory.Sequence(lambda n: f"customer{n}@example.com")
    shipping_address = factory.LazyFunction(
        lambda: {"street": "Av. Corrientes 1234", "city": "Buenos Aires", "country": "AR"}
    )
    total_amount = Decimal("10000.00")
    currency = Currency.ARS


class FXSnapshotFactory(factory.django.DjangoModelFactory):
    """ARS→USDT snapshot at 1000 ARS per USDT."""

    class Meta:
        model = FXSnapshot

    from_currency = Currency.ARS
    to_currency = "USDT"
    rate = Decimal("0.0010000000")
    rate_inverse = Decimal("1000.0000000000")
    source = "test"
    captured_at = factory.LazyFunction(timezone.now)


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Standalone payment in CREATED state for 10000.00 ARS.

    Traits:
        confirmed: CONFIRMED with an FX snapshot and settlement amounts
        expired: EXPIRED, expires_at in the past
        failed: FAILED with a rejection reason
        overdue: still open but expires_at in the past
    """

    class Meta:
        model = Payment

    merchant = factory.SubFactory(MerchantFactory)
    amount = Decimal("10000.00")
    currency = Currency.ARS
    customer_email = factory.Sequence(lambda n: f"payer{n}@example.com")
    metadata = factory.LazyFunction(dict)

    class Params:
        confirmed = factory.Trait(
            status=PaymentStatus.CONFIRMED,
            confirmed_at=factory.LazyFunction(timezone.now),
            fx_snapshot=factory.SubFactory(FXSnapshotFactory),
            provider_charge_id=factory.Sequence(lambda n: f"{9000000 + n}"),
            status_detail="accredited",
            amount_settlement_gross=Decimal("10.00"),
            fee_settlement=Decimal("0.25"),
            amount_settlement_net=Decimal("9.75"),
        )
        expired = factory.Trait(
            status=PaymentStatus.EXPIRED,
            expires_at=factory.LazyFunction(lambda: timezone.now() - timedelta(minutes=5)),
            expired_at=factory.LazyFunction(timezone.now),
        )
        failed = factory.Trait(
            status=PaymentStatus.FAILED,
            failed_at=factory.LazyFunction(timezone.now),
            failure_reason="Insufficient funds",
            status_detail="cc_rejected_insufficient_amount",
        )
        overdue = factory.Trait(
            expires_at=factory.LazyFunction(lambda: timezone.now() - timedelta(minutes=1)),
        )


class MerchantWebhookFactory(factory.django.DjangoModelFactory):
    """Active subscription to both payment events."""

    class Meta:
        model = MerchantWebhook

    merchant = factory.SubFactory(MerchantFactory)
    url = factory.Sequence(lambda n: f"https://merchant{n}.example.com/webhooks")
    events = factory.LazyFunction(
        lambda: [MerchantEventType.PAYMENT_CONFIRMED.value, MerchantEventType.PAYMENT_FAILED.value]
    )
    is_active = True


class WebhookDeliveryFactory(factory.django.DjangoModelFactory):
    """Delivery that failed once and is due for a retry."""

    class Meta:
        model = WebhookDelivery

    webhook = factory.SubFactory(MerchantWebhookFactory)
    event_id = factory.LazyFunction(uuid.uuid4)
    event_type = MerchantEventType.PAYMENT_CONFIRMED
    payload = factory.LazyAttribute(
        lambda o: {"id": str(o.event_id), "event": o.event_type, "data": {"status": "confirmed"}}
    )
    response_status = 500
    attempt_count = 1
    last_attempt_at = factory.LazyFunction(lambda: timezone.now() - timedelta(minutes=2))
    next_retry_at = factory.LazyFunction(lambda: timezone.now() - timedelta(minutes=1))


class GatewayEventFactory(factory.django.DjangoModelFactory):
    """Recorded payment callback."""

    class Meta:
        model = GatewayEvent

    source = GatewayEventSource.CALLBACK
    event_type = "callback.payment"
    provider_charge_id = factory.Sequence(lambda n: f"{1000000 + n}")
    payload = factory.LazyAttribute(
        lambda o: {"type": "payment", "action": "payment.updated", "data": {"id": o.provider_charge_id}}
    )
