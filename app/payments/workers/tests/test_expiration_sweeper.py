"""
Tests for the payment expiration sweeper task.
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from freezegun import freeze_time

from payments.models import Order, Payment
from payments.state_machines import OrderStatus, PaymentStatus
from payments.tests.factories import OrderFactory, PaymentFactory
from payments.workers import expire_stale_payments
from payments.workers.expiration_sweeper import SWEEP_LOCK_KEY, SWEEP_LOCK_TTL


@pytest.mark.django_db
class TestExpireStalePayments:
    def test_expires_overdue_payments(self, mock_redis, merchant_events):
        order = OrderFactory()
        overdue = PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount, overdue=True)
        fresh = PaymentFactory(expires_at=timezone.now() + timedelta(hours=1))

        result = expire_stale_payments.run()

        assert result == {"status": "completed", "candidates": 1, "expired": 1, "skipped": 0, "stale": 0}
        assert Payment.objects.get(pk=overdue.pk).status == PaymentStatus.EXPIRED
        assert Order.objects.get(pk=order.pk).status == OrderStatus.EXPIRED
        assert Payment.objects.get(pk=fresh.pk).status == PaymentStatus.CREATED

    def test_payment_becomes_due_with_time(self, mock_redis, merchant_events):
        with freeze_time("2026-03-01 12:00:00"):
            payment = PaymentFactory(expires_at=timezone.now() + timedelta(minutes=30))

        with freeze_time("2026-03-01 12:29:00"):
            assert expire_stale_payments.run()["candidates"] == 0

        with freeze_time("2026-03-01 12:31:00"):
            assert expire_stale_payments.run()["expired"] == 1

        assert Payment.objects.get(pk=payment.pk).status == PaymentStatus.EXPIRED

    def test_terminal_payments_untouched(self, mock_redis, merchant_events):
        PaymentFactory(confirmed=True, expires_at=timezone.now() - timedelta(hours=1))
        PaymentFactory(failed=True, expires_at=timezone.now() - timedelta(hours=1))

        result = expire_stale_payments.run()

        assert result["candidates"] == 0

    def test_respects_batch_size(self, mock_redis, merchant_events):
        PaymentFactory.create_batch(3, overdue=True)

        result = expire_stale_payments.run(batch_size=2)

        assert result["expired"] == 2
        assert Payment.objects.filter(status=PaymentStatus.EXPIRED).count() == 2

    def test_takes_non_blocking_lock(self, mock_redis):
        expire_stale_payments.run()

        mock_redis.set.assert_called_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == f"lock:{SWEEP_LOCK_KEY}"
        assert kwargs == {"nx": True, "ex": SWEEP_LOCK_TTL}
        mock_redis.eval.assert_called_once()

    def test_skipped_when_lock_held(self, mock_redis):
        mock_redis.set.return_value = False
        payment = PaymentFactory(overdue=True)

        result = expire_stale_payments.run()

        assert result == {"status": "skipped"}
        assert Payment.objects.get(pk=payment.pk).status == PaymentStatus.CREATED
