"""
DirectChargeHandler: synchronous card charge entry point.

The checkout client tokenizes the card with the gateway SDK and posts the
token here. The handler submits the charge with the payment's stable
idempotency key, records the gateway's answer, runs the confirmation
engine and answers the payer right away with a translated reason.

Usage:
    from payments.services import DirectChargeHandler, DirectChargeRequest

    result = DirectChargeHandler.charge(DirectChargeRequest(
        order_id=order.id,
        token="ff8080814c11e237014c1ff593b57b4d",
        payment_method_id="visa",
        payer=PayerInfo(email="payer@example.com"),
    ))
    if result.success:
        ...
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from django.db import transaction

from core.services import BaseService
from payments.adapters import ChargeRequest, ChargeResult, GatewayAdapter, PayerInfo
from payments.exceptions import (
    AmountMismatch,
    ConflictingTransition,
    ExpiredPayment,
    GatewayRejected,
    PaymentNotFoundError,
    PaymentValidationError,
    RateUnavailable,
    StaleRecordError,
)
from payments.models import GatewayEvent, Order, Payment
from payments.services.confirmation import ConfirmationEngine, ConfirmationOutcome
from payments.state_machines import ChargeStatus, GatewayEventSource, OrderStatus, PaymentStatus
from payments.status_details import GENERIC_FAILURE, describe_status_detail


@dataclass
class DirectChargeRequest:
    """
    A tokenized card submission for an order.

    Attributes:
        order_id: Order being paid
        token: Card token from the gateway SDK
        payment_method_id: Card brand, e.g. "visa"
        payer: Payer details
        installments: Number of installments
        issuer_id: Card issuer, when known
    """

    order_id: uuid.UUID
    token: str
    payment_method_id: str
    payer: PayerInfo
    installments: int = 1
    issuer_id: str | None = None


@dataclass
class DirectChargeResult:
    """
    What the payer is told.

    Attributes:
        success: False when the charge was declined or could not be applied
        status: Gateway charge status, or "expired"
        order_id: Order the charge was for
        status_detail: Gateway status detail code
        provider_charge_id: Gateway charge id
        message: Translated, payer-facing explanation
        already_paid: The order was paid before this submission
    """

    success: bool
    status: str
    order_id: uuid.UUID
    status_detail: str = ""
    provider_charge_id: str | None = None
    message: str = ""
    payment_id: uuid.UUID | None = field(default=None)
    already_paid: bool = False


class DirectChargeHandler(BaseService):
    """Charges an order with a card token and confirms it synchronously."""

    @classmethod
    def charge(cls, request: DirectChargeRequest) -> DirectChargeResult:
        """
        Charge an order.

        Args:
            request: Card token and payer for the order

        Returns:
            DirectChargeResult

        Raises:
            PaymentNotFoundError: Unknown order
            ExpiredPayment: Order or its payment has expired
            PaymentValidationError: Invalid charge parameters
            GatewayUnavailable: Gateway unreachable; the client may retry
                the same submission safely
        """
        logger = cls.get_logger()
        order, payment = cls._resolve_payment(request.order_id)
        if payment is None:
            logger.info("Order already paid", extra={"order_id": str(order.id)})
            return DirectChargeResult(
                success=True,
                status=ChargeStatus.APPROVED,
                order_id=order.id,
                status_detail="already_paid",
                message=describe_status_detail("accredited"),
                already_paid=True,
            )

        try:
            charge_request = ChargeRequest(
                token=request.token,
                payment_method_id=request.payment_method_id,
                payer=request.payer,
                idempotency_key=payment.idempotency_key,
                installments=request.installments,
                issuer_id=request.issuer_id,
            )
        except ValueError as e:
            raise PaymentValidationError(str(e), details={"order_id": str(order.id)}) from e

        log_context = {"order_id": str(order.id), "payment_id": str(payment.id)}
        try:
            charge = GatewayAdapter.submit_charge(order, payment, charge_request)
        except GatewayRejected as e:
            logger.warning(
                "Gateway rejected charge request",
                extra={**log_context, "status_code": e.status_code, "error_code": e.error_code},
            )
            GatewayEvent.record(
                source=GatewayEventSource.DIRECT_CHARGE,
                event_type="charge.rejected_request",
                payload=e.provider_error or {},
                payment=payment,
                order=order,
                error_message=e.message,
            )
            return DirectChargeResult(
                success=False,
                status=ChargeStatus.REJECTED,
                order_id=order.id,
                payment_id=payment.id,
                message=str(GENERIC_FAILURE),
            )

        GatewayEvent.record(
            source=GatewayEventSource.DIRECT_CHARGE,
            event_type=f"charge.{charge.status or 'unknown'}",
            payload=charge.raw_response,
            provider_charge_id=charge.provider_charge_id,
            payment=payment,
            order=order,
        )
        log_context["provider_charge_id"] = charge.provider_charge_id
        return cls._apply(order, payment, charge, log_context)

    @classmethod
    def _apply(cls, order: Order, payment: Payment, charge: ChargeResult, log_context: dict) -> DirectChargeResult:
        logger = cls.get_logger()
        base = {
            "status": charge.status,
            "order_id": order.id,
            "payment_id": payment.id,
            "status_detail": charge.status_detail,
            "provider_charge_id": charge.provider_charge_id,
        }

        try:
            result = ConfirmationEngine.apply_charge(payment.id, charge)
        except AmountMismatch:
            return DirectChargeResult(success=False, message=describe_status_detail("amount_mismatch"), **base)
        except ConflictingTransition:
            return DirectChargeResult(success=False, message=str(GENERIC_FAILURE), **base)
        except (RateUnavailable, StaleRecordError) as e:
            from payments.tasks import reconcile_charge

            logger.warning(
                "Charge accepted, confirmation deferred",
                extra={**log_context, "error_code": e.error_code},
            )
            reconcile_charge.delay(str(payment.id), charge.provider_charge_id)
            return DirectChargeResult(
                success=True,
                message=describe_status_detail("pending_contingency"),
                **base,
            )

        if result.outcome in (ConfirmationOutcome.FAILED, ConfirmationOutcome.ALREADY_FAILED):
            return DirectChargeResult(success=False, message=result.reason, **base)

        logger.info("Direct charge applied", extra={**log_context, "outcome": result.outcome})
        return DirectChargeResult(
            success=True,
            message=describe_status_detail(charge.status_detail or "accredited"),
            **base,
        )

    @classmethod
    def _resolve_payment(cls, order_id: uuid.UUID) -> tuple[Order, Payment | None]:
        """
        Lock the order and pick the payment to charge.

        Returns the order's open payment, or a new attempt when every
        earlier one failed. The payment is None when the order is already
        paid. Concurrent submissions for the same order serialize on the
        order row, so they share one payment and one idempotency key.

        Raises:
            PaymentNotFoundError: Unknown order
            ExpiredPayment: The order or its open payment has expired
        """
        with transaction.atomic():
            order = Order.objects.select_for_update().filter(pk=order_id).first()
            if order is None:
                raise PaymentNotFoundError(
                    f"Order {order_id} not found",
                    details={"order_id": str(order_id)},
                )
            if order.status == OrderStatus.PAID or order.payments.filter(status=PaymentStatus.CONFIRMED).exists():
                return order, None
            if order.status == OrderStatus.EXPIRED:
                raise ExpiredPayment(f"Order {order.id} has expired", details={"order_id": str(order.id)})

            payment = (
                order.payments.select_related("merchant")
                .filter(status__in=PaymentStatus.active())
                .order_by("-created_at")
                .first()
            )
            if payment is None:
                if order.payments.filter(status=PaymentStatus.EXPIRED).exists() and not order.payments.filter(
                    status=PaymentStatus.FAILED
                ).exists():
                    raise ExpiredPayment(f"Order {order.id} has expired", details={"order_id": str(order.id)})
                payment = Payment.objects.create(
                    merchant=order.merchant,
                    order=order,
                    amount=order.total_amount,
                    currency=order.currency,
                    customer_email=order.customer_email,
                )
                cls.get_logger().info(
                    "Payment attempt created",
                    extra={"order_id": str(order.id), "payment_id": str(payment.id)},
                )

        if payment.has_expired:
            raise ExpiredPayment(
                f"Payment {payment.id} has expired",
                details={"order_id": str(order.id), "payment_id": str(payment.id)},
            )
        return order, payment
