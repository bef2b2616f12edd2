"""
Handlers for gateway callbacks.

A callback only tells us that something happened to a charge; its body is
never trusted for status or amount. The payment handler fetches the charge
from the gateway, resolves the payment it belongs to and hands the fetched
charge to the confirmation engine.

Callback types without a registered handler (merchant_order,
subscription_preapproval, ...) are logged and acknowledged.

Usage:
    from payments.webhooks.handlers import dispatch_callback

    result = dispatch_callback(gateway_event)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult
from payments.adapters import ChargeResult, GatewayAdapter
from payments.exceptions import AmountMismatch, ConflictingTransition, GatewayRejected
from payments.models import GatewayEvent, Order, Payment
from payments.services import ConfirmationEngine
from payments.state_machines import GatewayEventSource, PaymentStatus

if TYPE_CHECKING:
    from payments.services import ConfirmationResult


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


CALLBACK_HANDLERS: dict[str, Callable[[GatewayEvent], ServiceResult]] = {}


def register_handler(callback_type: str) -> Callable:
    """
    Register a handler for a gateway callback type.

    Usage:
        @register_handler("payment")
        def handle_payment_callback(event: GatewayEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[GatewayEvent], ServiceResult]) -> Callable:
        CALLBACK_HANDLERS[callback_type] = func
        return func

    return decorator


CALLBACK_EVENT_PREFIX = "callback."


def callback_type_of(payload: dict, query=None) -> str:
    """Callback type from the body, falling back to the type or topic query parameter."""
    query = query or {}
    return str(payload.get("type") or payload.get("topic") or query.get("type") or query.get("topic") or "")


def dispatch_callback(event: GatewayEvent) -> ServiceResult:
    """
    Route a recorded callback to its handler.

    Returns:
        The handler's ServiceResult, or success(None) for ignored types
    """
    callback_type = event.event_type.removeprefix(CALLBACK_EVENT_PREFIX)
    handler = CALLBACK_HANDLERS.get(callback_type)
    if handler is None:
        logger.info(
            "Ignoring gateway callback type",
            extra={"gateway_event_id": str(event.id), "callback_type": callback_type},
        )
        return ServiceResult.success(None)
    return handler(event)


# =============================================================================
# Payment resolution
# =============================================================================


def _as_uuid(value) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def resolve_payment(charge: ChargeResult) -> Payment | None:
    """
    Find the payment a gateway charge belongs to.

    Tried in order: a payment already linked to the charge id, the
    payment_id we sent as metadata, then external_reference as an order id
    (its open payment, or else its latest) and finally as a payment id.
    """
    if charge.provider_charge_id:
        payment = Payment.objects.filter(provider_charge_id=charge.provider_charge_id).first()
        if payment is not None:
            return payment

    metadata = charge.raw_response.get("metadata") or {}
    payment_id = _as_uuid(metadata.get("payment_id"))
    if payment_id is not None:
        payment = Payment.objects.filter(pk=payment_id).first()
        if payment is not None:
            return payment

    reference = _as_uuid(charge.external_reference)
    if reference is None:
        return None

    order = Order.objects.filter(pk=reference).first()
    if order is not None:
        payments = order.payments.order_by("-created_at")
        return payments.filter(status__in=PaymentStatus.active()).first() or payments.first()

    return Payment.objects.filter(pk=reference).first()


def apply_charge(payment: Payment, charge: ChargeResult) -> ServiceResult[ConfirmationResult]:
    """
    Run the confirmation engine and turn its business outcomes into results.

    AmountMismatch and ConflictingTransition are recorded by the engine and
    returned as failures; transient errors propagate so the task retries.
    """
    try:
        result = ConfirmationEngine.apply_charge(payment.id, charge)
    except (AmountMismatch, ConflictingTransition) as e:
        return ServiceResult.from_exception(e)
    return ServiceResult.success(result)


def fetch_and_record(provider_charge_id: str) -> ChargeResult:
    """
    Fetch a charge and append the response to the audit log.

    Raises:
        GatewayUnavailable / GatewayRejected: From the gateway
    """
    charge = GatewayAdapter.fetch_charge(provider_charge_id)
    GatewayEvent.record(
        source=GatewayEventSource.CHARGE_FETCH,
        event_type=f"charge.{charge.status or 'unknown'}",
        payload=charge.raw_response,
        provider_charge_id=charge.provider_charge_id,
    )
    return charge


# =============================================================================
# Payment Callback
# =============================================================================


@register_handler("payment")
def handle_payment_callback(event: GatewayEvent) -> ServiceResult:
    """
    Fetch the charge named by a payment callback and apply it.

    Raises:
        GatewayUnavailable, RateUnavailable, StaleRecordError: Retryable
    """
    charge_id = event.provider_charge_id
    if not charge_id:
        logger.warning("Payment callback without charge id", extra={"gateway_event_id": str(event.id)})
        return ServiceResult.failure("Callback has no charge id", error_code="MISSING_CHARGE_ID")

    log_context = {"gateway_event_id": str(event.id), "provider_charge_id": charge_id}
    try:
        charge = fetch_and_record(charge_id)
    except GatewayRejected as e:
        logger.warning("Gateway refused charge lookup", extra={**log_context, "status_code": e.status_code})
        GatewayEvent.record(
            source=GatewayEventSource.CHARGE_FETCH,
            event_type="charge.fetch_rejected",
            payload=e.provider_error if isinstance(e.provider_error, dict) else {},
            provider_charge_id=charge_id,
            error_message=e.message,
        )
        return ServiceResult.from_exception(e)

    payment = resolve_payment(charge)
    if payment is None:
        logger.warning(
            "Charge does not reference a known payment",
            extra={**log_context, "external_reference": charge.external_reference},
        )
        GatewayEvent.record(
            source=GatewayEventSource.ENGINE,
            event_type="unresolved_charge",
            payload=charge.raw_response,
            provider_charge_id=charge.provider_charge_id,
            error_message=f"No payment for external_reference {charge.external_reference!r}",
        )
        return ServiceResult.failure("Charge does not reference a known payment", error_code="PAYMENT_NOT_FOUND")

    logger.info("Applying fetched charge", extra={**log_context, "payment_id": str(payment.id), "status": charge.status})
    return apply_charge(payment, charge)
