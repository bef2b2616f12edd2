"""
Payment expiration sweeper.

Periodic Celery task (celery-beat) that expires payments whose expires_at
has passed and orders left without an open payment.

Overlapping ticks are skipped with a non-blocking DistributedLock. The
lock only saves work; correctness against a concurrent confirmation comes
from the status guard in ExpirationService.

Usage:
    from payments.workers import expire_stale_payments

    expire_stale_payments.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.utils import timezone

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock
from payments.services.expiration import ExpirationService

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SWEEP_LOCK_KEY = "sweep:payment-expiration"

# Longer than any sweep should take; frees the lock if a worker dies
SWEEP_LOCK_TTL = 300

BATCH_SIZE = 200


@shared_task(bind=True)
def expire_stale_payments(self, batch_size: int = BATCH_SIZE) -> dict:
    """
    Expire one batch of overdue payments.

    Returns:
        Dict with status and counts (candidates, expired, skipped, stale),
        or status "skipped" when another sweep holds the lock
    """
    try:
        with DistributedLock(SWEEP_LOCK_KEY, ttl=SWEEP_LOCK_TTL, blocking=False):
            counts = ExpirationService.expire_stale(timezone.now(), batch_size)
    except LockAcquisitionError:
        logger.info("Expiration sweep already running, skipping")
        return {"status": "skipped"}

    logger.info("Expiration sweep complete", extra=counts)
    return {"status": "completed", **counts}
