"""
Tests for IdempotencyGuard.

The guard is what makes duplicate and late gateway messages harmless, so
each classification branch and the compare-and-set write are covered.
"""

import pytest
from django.db import transaction
from django.utils import timezone

from payments.exceptions import ConflictingTransition, PaymentNotFoundError, StaleRecordError
from payments.guards import IdempotencyGuard
from payments.models import Payment
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentFactory


def acquire_expiry(payment_id, **kwargs):
    return IdempotencyGuard.acquire(
        Payment,
        payment_id,
        target=PaymentStatus.EXPIRED,
        allowed_from=PaymentStatus.active(),
        **kwargs,
    )


@pytest.mark.django_db
class TestAcquire:
    def test_open_payment_proceeds(self):
        payment = PaymentFactory()

        with transaction.atomic():
            guarded = acquire_expiry(payment.pk)

        assert guarded.is_noop is False
        assert guarded.observed_status == PaymentStatus.CREATED
        assert guarded.observed_version == 1

    def test_target_state_is_noop(self):
        payment = PaymentFactory(expired=True)

        with transaction.atomic():
            guarded = acquire_expiry(payment.pk)

        assert guarded.is_noop is True

    def test_other_terminal_state_conflicts(self):
        payment = PaymentFactory(confirmed=True)

        with transaction.atomic(), pytest.raises(ConflictingTransition) as exc_info:
            acquire_expiry(payment.pk)

        assert exc_info.value.current_state == PaymentStatus.CONFIRMED
        assert exc_info.value.target_state == PaymentStatus.EXPIRED

    def test_noop_from_widens_noop_states(self):
        payment = PaymentFactory(confirmed=True)

        with transaction.atomic():
            guarded = acquire_expiry(payment.pk, noop_from=PaymentStatus.terminal())

        assert guarded.is_noop is True

    def test_unknown_record(self):
        with transaction.atomic(), pytest.raises(PaymentNotFoundError):
            acquire_expiry("00000000-0000-0000-0000-000000000000")

    def test_requires_transaction(self, mocker):
        payment = PaymentFactory()
        connection = mocker.MagicMock(in_atomic_block=False)
        mocker.patch("payments.guards.transaction.get_connection", return_value=connection)

        with pytest.raises(transaction.TransactionManagementError):
            acquire_expiry(payment.pk)


@pytest.mark.django_db
class TestCommit:
    def test_writes_status_fields_and_version(self):
        payment = PaymentFactory()
        now = timezone.now()

        with transaction.atomic():
            guarded = acquire_expiry(payment.pk)
            guarded.instance.expire(expired_at=now)
            IdempotencyGuard.commit(guarded, "expired_at")

        fresh = Payment.objects.get(pk=payment.pk)
        assert fresh.status == PaymentStatus.EXPIRED
        assert fresh.expired_at == now
        assert fresh.version == 2
        assert guarded.instance.version == 2

    def test_lost_race_raises_stale_record(self):
        payment = PaymentFactory()

        with transaction.atomic():
            guarded = acquire_expiry(payment.pk)
            # Another writer bumps the version after our read.
            Payment.objects.filter(pk=payment.pk).update(version=5)
            guarded.instance.expire(expired_at=timezone.now())

            with pytest.raises(StaleRecordError) as exc_info:
                IdempotencyGuard.commit(guarded, "expired_at")

        assert exc_info.value.details["expected_version"] == 1
        assert Payment.objects.get(pk=payment.pk).status == PaymentStatus.CREATED
