"""
ExpirationService: moves timed-out payments and their orders to expired.

Expiry goes through IdempotencyGuard like every other transition, so a
payment that was confirmed between the sweeper's candidate query and its
write is skipped rather than expired: the guard re-reads the row and
treats any terminal status as a no-op.

An order expires once it has no open or confirmed payment left and at
least one of its payments expired.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from payments.exceptions import StaleRecordError
from payments.guards import IdempotencyGuard
from payments.models import Order, Payment
from payments.state_machines import OrderStatus, PaymentStatus

BATCH_SIZE = 200


class ExpirationService(BaseService):
    """Expiry of payments past expires_at."""

    @classmethod
    def stale_payment_ids(cls, now: datetime, limit: int = BATCH_SIZE) -> list[uuid.UUID]:
        return list(
            Payment.objects.filter(status__in=PaymentStatus.active(), expires_at__lt=now)
            .order_by("expires_at")
            .values_list("id", flat=True)[:limit]
        )

    @classmethod
    def expire_payment(cls, payment_id: uuid.UUID, now: datetime | None = None) -> ServiceResult[Payment]:
        """
        Expire one payment if it is still open and past its expiry.

        Returns:
            success with the expired payment, or failure with error_code
            PAYMENT_ALREADY_TERMINAL / PAYMENT_NOT_DUE when nothing changed

        Raises:
            StaleRecordError: The payment changed between read and write
        """
        now = now or timezone.now()
        with transaction.atomic():
            guarded = IdempotencyGuard.acquire(
                Payment,
                payment_id,
                target=PaymentStatus.EXPIRED,
                allowed_from=PaymentStatus.active(),
                noop_from=PaymentStatus.terminal(),
            )
            payment = guarded.instance
            if guarded.is_noop:
                return ServiceResult.failure(
                    f"Payment {payment_id} is already {payment.status}",
                    error_code="PAYMENT_ALREADY_TERMINAL",
                )
            if payment.expires_at > now:
                return ServiceResult.failure(
                    f"Payment {payment_id} expires at {payment.expires_at.isoformat()}",
                    error_code="PAYMENT_NOT_DUE",
                )

            payment.expire(expired_at=now)
            IdempotencyGuard.commit(guarded, "expired_at")
            order_expired = cls._expire_order_if_settled(payment.order_id, now) if payment.order_id else False

        cls.get_logger().info(
            "Payment expired",
            extra={
                "payment_id": str(payment.id),
                "order_id": str(payment.order_id) if payment.order_id else None,
                "order_expired": order_expired,
            },
        )
        return ServiceResult.success(payment)

    @classmethod
    def _expire_order_if_settled(cls, order_id: uuid.UUID, now: datetime) -> bool:
        still_open = (
            Payment.objects.filter(order_id=order_id)
            .exclude(status__in=[PaymentStatus.EXPIRED, PaymentStatus.FAILED])
            .exists()
        )
        if still_open:
            return False

        guarded = IdempotencyGuard.acquire(
            Order,
            order_id,
            target=OrderStatus.EXPIRED,
            allowed_from=[OrderStatus.PENDING_PAYMENT],
            noop_from=OrderStatus.terminal(),
        )
        if guarded.is_noop:
            return False
        guarded.instance.expire(now)
        IdempotencyGuard.commit(guarded, "expired_at")
        return True

    @classmethod
    def expire_stale(cls, now: datetime | None = None, batch_size: int = BATCH_SIZE) -> dict[str, int]:
        """
        Expire one batch of overdue payments.

        A payment that loses a race is counted as stale and left for the
        next run.

        Returns:
            Counts: candidates, expired, skipped, stale
        """
        now = now or timezone.now()
        candidates = cls.stale_payment_ids(now, batch_size)
        counts = {"candidates": len(candidates), "expired": 0, "skipped": 0, "stale": 0}

        for payment_id in candidates:
            try:
                result = cls.expire_payment(payment_id, now)
            except StaleRecordError:
                counts["stale"] += 1
                cls.get_logger().info("Payment changed during expiry", extra={"payment_id": str(payment_id)})
                continue
            counts["expired" if result.success else "skipped"] += 1

        return counts
