"""
Merchant webhook redelivery sweep.

Picks WebhookDelivery rows that were never acknowledged with a 2xx and
whose next_retry_at has come, and sends them again with the same body and
signature. Each attempt moves next_retry_at further out (capped
exponential backoff) until MERCHANT_WEBHOOK_MAX_ATTEMPTS is reached, at
which point next_retry_at is cleared and the row is left for inspection.

Usage:
    from payments.workers import redeliver_failed_webhooks

    redeliver_failed_webhooks.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock
from payments.models import WebhookDelivery
from payments.services.merchant_webhooks import WebhookDispatcher

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SWEEP_LOCK_KEY = "sweep:webhook-redelivery"
SWEEP_LOCK_TTL = 300
BATCH_SIZE = 100


def due_deliveries(now, limit: int = BATCH_SIZE):
    return (
        WebhookDelivery.objects.filter(
            delivered_at__isnull=True,
            next_retry_at__isnull=False,
            next_retry_at__lte=now,
            attempt_count__lt=settings.MERCHANT_WEBHOOK_MAX_ATTEMPTS,
            webhook__is_active=True,
        )
        .select_related("webhook")
        .order_by("next_retry_at")[:limit]
    )


@shared_task(bind=True)
def redeliver_failed_webhooks(self, batch_size: int = BATCH_SIZE) -> dict:
    """
    Retry due webhook deliveries.

    Returns:
        Dict with status and counts (attempted, delivered, failed), or
        status "skipped" when another sweep holds the lock
    """
    try:
        with DistributedLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, blocking=False):
            counts = {"attempted": 0, "delivered": 0, "failed": 0}
            for delivery in due_deliveries(timezone.now(), batch_size):
                delivery = WebhookDispatcher.redeliver(delivery)
                counts["attempted"] += 1
                counts["delivered" if delivery.is_delivered else "failed"] += 1
    except LockAcquisitionError:
        logger.info("Webhook redelivery sweep already running, skipping")
        return {"status": "skipped"}

    logger.info("Webhook redelivery sweep complete", extra=counts)
    return {"status": "completed", **counts}
