"""
Periodic payment workers.

This module contains the Celery tasks run by celery-beat:
- expire_stale_payments: Expires overdue payments and their orders
- redeliver_failed_webhooks: Retries undelivered merchant webhooks

Usage:
    from payments.workers import expire_stale_payments, redeliver_failed_webhooks

    expire_stale_payments.delay()
"""

from payments.workers.expiration_sweeper import expire_stale_payments
from payments.workers.webhook_redelivery import redeliver_failed_webhooks

__all__ = [
    "expire_stale_payments",
    "redeliver_failed_webhooks",
]
