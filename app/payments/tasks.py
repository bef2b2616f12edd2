"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing recorded gateway callbacks
- Reconciling direct charges whose confirmation was deferred
- Delivering merchant webhook events

Periodic sweeps live in payments.workers.

Retry policy:
    GatewayUnavailable, RateUnavailable and StaleRecordError are transient
    and retried with exponential backoff. Business outcomes (amount
    mismatch, conflicting transition, unknown payment) are recorded as
    GatewayEvents by the code that detects them and are not retried. When
    retries run out, or an unexpected error escapes, a processing_failed
    GatewayEvent keeps the failure for reconciliation.

Usage:
    from payments.tasks import process_gateway_callback

    process_gateway_callback.delay(str(gateway_event.id))
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task

from payments.exceptions import GatewayUnavailable, RateUnavailable, StaleRecordError
from payments.models import GatewayEvent, Payment
from payments.state_machines import GatewayEventSource

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_CALLBACK_RETRIES = 8
TRANSIENT_ERRORS = (GatewayUnavailable, RateUnavailable, StaleRecordError)


def _result_summary(result) -> dict:
    if result.success:
        outcome = getattr(result.data, "outcome", None)
        return {"status": "processed", "outcome": str(outcome) if outcome else None}
    return {"status": "handler_failed", "error": result.error, "error_code": result.error_code}


def _record_if_final(task, error: Exception, *, payload: dict, provider_charge_id: str = "", payment=None) -> None:
    """
    Keep a failure that will not be retried for offline reconciliation.

    Transient errors are retried by Celery; only the last attempt, or an
    error Celery does not retry, leaves a processing_failed GatewayEvent.
    """
    retries = task.request.retries or 0
    if isinstance(error, TRANSIENT_ERRORS) and retries < MAX_CALLBACK_RETRIES:
        return
    GatewayEvent.record(
        source=GatewayEventSource.ENGINE,
        event_type="processing_failed",
        payload={**payload, "task": task.name, "retries": retries},
        provider_charge_id=provider_charge_id,
        payment=payment,
        error_message=f"{type(error).__name__}: {error}",
    )
    logger.error(
        "Gave up processing charge",
        extra={**payload, "provider_charge_id": provider_charge_id, "error": str(error)},
    )


# =============================================================================
# Gateway Callback Processing
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=TRANSIENT_ERRORS,
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": MAX_CALLBACK_RETRIES},
    acks_late=True,
)
def process_gateway_callback(self, gateway_event_id: str) -> dict:
    """
    Process a recorded gateway callback.

    Args:
        gateway_event_id: UUID of the callback's GatewayEvent

    Returns:
        Dict with processing result status

    Raises:
        GatewayUnavailable, RateUnavailable, StaleRecordError: Retried
    """
    from payments.webhooks.handlers import dispatch_callback

    event = GatewayEvent.objects.filter(pk=UUID(str(gateway_event_id))).first()
    if event is None:
        logger.error("GatewayEvent not found", extra={"gateway_event_id": str(gateway_event_id)})
        return {"status": "not_found", "gateway_event_id": str(gateway_event_id)}

    logger.info(
        "Processing gateway callback",
        extra={
            "gateway_event_id": str(event.id),
            "event_type": event.event_type,
            "provider_charge_id": event.provider_charge_id,
            "retries": self.request.retries,
        },
    )
    try:
        result = dispatch_callback(event)
    except Exception as e:
        _record_if_final(
            self,
            e,
            payload={"gateway_event_id": str(event.id)},
            provider_charge_id=event.provider_charge_id,
            payment=event.payment,
        )
        raise
    summary = {"gateway_event_id": str(event.id), **_result_summary(result)}
    if not result.success:
        logger.warning("Gateway callback not applied", extra=summary)
    return summary


@shared_task(
    bind=True,
    autoretry_for=TRANSIENT_ERRORS,
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": MAX_CALLBACK_RETRIES},
    acks_late=True,
)
def reconcile_charge(self, payment_id: str, provider_charge_id: str) -> dict:
    """
    Re-fetch a charge and apply it to a known payment.

    Queued by the direct charge entry point when confirmation could not
    complete synchronously (no FX rate, lost race).

    Args:
        payment_id: Payment the charge belongs to
        provider_charge_id: Gateway charge id

    Returns:
        Dict with processing result status
    """
    from payments.webhooks.handlers import apply_charge, fetch_and_record

    payment = Payment.objects.filter(pk=UUID(str(payment_id))).first()
    if payment is None:
        logger.error("Payment not found for reconciliation", extra={"payment_id": str(payment_id)})
        return {"status": "not_found", "payment_id": str(payment_id)}

    try:
        charge = fetch_and_record(provider_charge_id)
        result = apply_charge(payment, charge)
    except Exception as e:
        _record_if_final(
            self,
            e,
            payload={"payment_id": str(payment.id)},
            provider_charge_id=provider_charge_id,
            payment=payment,
        )
        raise
    summary = {"payment_id": str(payment.id), "provider_charge_id": provider_charge_id, **_result_summary(result)}
    logger.info("Charge reconciled", extra=summary)
    return summary


# =============================================================================
# Merchant Webhooks
# =============================================================================


@shared_task(bind=True, acks_late=True)
def dispatch_merchant_event(self, merchant_id: str, event_type: str, payload: dict) -> dict:
    """
    Deliver a merchant event to every subscribed endpoint.

    Delivery failures are recorded on WebhookDelivery rows and picked up by
    the redelivery sweep; they never fail this task.

    Returns:
        Dict with delivery counts
    """
    from payments.services import WebhookDispatcher

    deliveries = WebhookDispatcher.dispatch(merchant_id, event_type, payload)
    return {
        "status": "dispatched",
        "event_id": payload.get("id"),
        "endpoints": len(deliveries),
        "delivered": sum(1 for delivery in deliveries if delivery.is_delivered),
    }


# =============================================================================
# Worker Tasks (re-exported for Celery autodiscovery)
# =============================================================================

# These tasks are defined in payments.workers but re-exported here so that
# app.autodiscover_tasks() registers them.
from payments.workers import (  # noqa: E402, F401
    expire_stale_payments,
    redeliver_failed_webhooks,
)
