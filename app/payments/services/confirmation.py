"""
ConfirmationEngine: applies a verified gateway charge to a Payment.

Given a ChargeResult that came from the gateway itself (a direct charge
response or an authenticated fetch, never a callback body), the engine
decides the Payment's next status and performs every side effect of that
decision in one transaction:

    approved             → FX snapshot, settlement amounts, ledger credit,
                           Payment confirmed, Order paid, payment.confirmed event
    pending / in_process → Payment stays (or becomes) pending, nothing else
    anything else        → Payment failed with a readable reason, payment.failed event

Every status write goes through IdempotencyGuard, so duplicate and late
charges resolve to no-ops or ConflictingTransition instead of double
credits. Merchant events are queued with transaction.on_commit and never
run for a transaction that rolled back.

Usage:
    from payments.services import ConfirmationEngine

    result = ConfirmationEngine.apply_charge(payment.id, charge)
    if result.outcome == ConfirmationOutcome.CONFIRMED:
        ...
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from core.services import BaseService
from payments.adapters.fx_rates import FxRateProvider
from payments.exceptions import AmountMismatch, ConflictingTransition, PaymentNotFoundError
from payments.guards import IdempotencyGuard
from payments.ledger.models import EntryType, LedgerEntry
from payments.ledger.services import LedgerService
from payments.ledger.types import Money, RecordEntryParams, to_decimal
from payments.models import FXSnapshot, GatewayEvent, Order, Payment
from payments.services.merchant_webhooks import build_payment_event, queue_merchant_event
from payments.state_machines import GatewayEventSource, MerchantEventType, OrderStatus, PaymentStatus
from payments.status_details import describe_status_detail

if TYPE_CHECKING:
    from payments.adapters.fx_rates import FxQuote
    from payments.adapters.gateway_adapter import ChargeResult


class ConfirmationOutcome(models.TextChoices):
    """What apply_charge did."""

    CONFIRMED = "confirmed", "Confirmed"
    ALREADY_CONFIRMED = "already_confirmed", "Already Confirmed"
    PENDING = "pending", "Pending"
    FAILED = "failed", "Failed"
    ALREADY_FAILED = "already_failed", "Already Failed"
    IGNORED = "ignored", "Ignored"


@dataclass
class ConfirmationResult:
    """
    Result of applying one charge.

    Attributes:
        outcome: What happened
        payment: Payment after the decision
        ledger_entry: Credit created by this call (None for no-ops)
        reason: Readable reason for failed payments
    """

    outcome: str
    payment: Payment
    ledger_entry: LedgerEntry | None = None
    reason: str = ""

    @property
    def is_confirmed(self) -> bool:
        return self.outcome in (ConfirmationOutcome.CONFIRMED, ConfirmationOutcome.ALREADY_CONFIRMED)


@dataclass(frozen=True)
class Settlement:
    """Settlement-currency amounts for one payment."""

    gross: Decimal
    fee: Decimal
    net: Decimal


def calculate_settlement(amount: Decimal, quote: FxQuote, fee_percentage: Decimal) -> Settlement:
    """
    Convert a local amount and split off the platform fee.

    gross = amount × rate and fee = gross × fee_percentage / 100, each
    rounded half-even to SETTLEMENT_DECIMAL_PLACES; net = gross - fee.
    """
    places = settings.SETTLEMENT_DECIMAL_PLACES
    gross = Money(quote.convert(amount), quote.to_currency).quantized(places)
    fee = Money(gross.amount * to_decimal(fee_percentage) / Decimal(100), gross.currency).quantized(places)
    return Settlement(gross=gross.amount, fee=fee.amount, net=gross.amount - fee.amount)


class ConfirmationEngine(BaseService):
    """State machine driver for gateway charge results."""

    CONFIRM_FIELDS = (
        "confirmed_at",
        "fx_snapshot",
        "amount_settlement_gross",
        "fee_settlement",
        "amount_settlement_net",
        "provider_charge_id",
        "status_detail",
    )
    FAIL_FIELDS = ("failed_at", "failure_reason", "status_detail", "provider_charge_id")

    @classmethod
    def apply_charge(
        cls,
        payment_id: uuid.UUID,
        charge: ChargeResult,
        fx_quote: FxQuote | None = None,
    ) -> ConfirmationResult:
        """
        Apply a verified charge to a payment.

        Args:
            payment_id: Payment the charge belongs to
            charge: Charge as reported by the gateway
            fx_quote: Rate to use; looked up when omitted and needed

        Returns:
            ConfirmationResult

        Raises:
            PaymentNotFoundError: Unknown payment
            AmountMismatch: Charged amount differs from the snapshot (payment failed)
            ConflictingTransition: Payment already in another terminal state
            RateUnavailable: No FX rate; nothing was changed
            StaleRecordError: Lost a compare-and-set race; retry re-reads
        """
        payment = Payment.objects.select_related("merchant").filter(pk=payment_id).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )

        if charge.is_approved:
            return cls._confirm(payment, charge, fx_quote)
        if charge.is_in_flight:
            return cls._mark_pending(payment, charge)

        code = charge.status_detail or charge.status
        return cls._fail(payment, charge, reason=describe_status_detail(code), status_detail=code)

    # =========================================================================
    # Approved
    # =========================================================================

    @classmethod
    def _confirm(cls, payment: Payment, charge: ChargeResult, fx_quote: FxQuote | None) -> ConfirmationResult:
        logger = cls.get_logger()
        log_context = {
            "payment_id": str(payment.id),
            "provider_charge_id": charge.provider_charge_id,
            "current_status": payment.status,
        }

        if payment.status == PaymentStatus.CONFIRMED:
            logger.info("Payment already confirmed", extra=log_context)
            return ConfirmationResult(ConfirmationOutcome.ALREADY_CONFIRMED, payment)

        if cls._amount_mismatch(payment, charge):
            cls._fail(
                payment,
                charge,
                reason=describe_status_detail("amount_mismatch"),
                status_detail="amount_mismatch",
            )
            error = AmountMismatch(payment.id, payment.amount, charge.amount, charge.currency)
            logger.error("Charged amount does not match payment", extra={**log_context, **error.details})
            GatewayEvent.record(
                source=GatewayEventSource.ENGINE,
                event_type="amount_mismatch",
                payload={**error.details, "charge": charge.raw_response},
                provider_charge_id=charge.provider_charge_id,
                payment=payment,
                order=payment.order,
                error_message=error.message,
            )
            raise error

        # Terminal payments are rejected by the guard below; skip the rate
        # lookup so a late approval surfaces as a conflict, not a rate error.
        if payment.status in PaymentStatus.active():
            quote = fx_quote or FxRateProvider.get_quote(payment.currency, settings.SETTLEMENT_CURRENCY)
        else:
            quote = fx_quote

        now = timezone.now()
        try:
            with transaction.atomic():
                guarded = IdempotencyGuard.acquire(
                    Payment,
                    payment.pk,
                    target=PaymentStatus.CONFIRMED,
                    allowed_from=PaymentStatus.active(),
                )
                if guarded.is_noop:
                    return ConfirmationResult(ConfirmationOutcome.ALREADY_CONFIRMED, guarded.instance)

                locked = guarded.instance
                settlement = calculate_settlement(locked.amount, quote, payment.merchant.fee_percentage)
                snapshot = FXSnapshot.objects.create(
                    from_currency=quote.from_currency,
                    to_currency=quote.to_currency,
                    rate=quote.rate,
                    rate_inverse=quote.rate_inverse,
                    source=quote.source,
                    captured_at=quote.captured_at,
                )
                locked.confirm(
                    confirmed_at=now,
                    fx_snapshot=snapshot,
                    gross=settlement.gross,
                    fee=settlement.fee,
                    net=settlement.net,
                    provider_charge_id=charge.provider_charge_id,
                    status_detail=charge.status_detail,
                )
                IdempotencyGuard.commit(guarded, *cls.CONFIRM_FIELDS)

                entry = None
                if settlement.net > 0:
                    entry = LedgerService.record_entry(
                        RecordEntryParams(
                            merchant_id=locked.merchant_id,
                            amount=settlement.net,
                            entry_type=EntryType.CREDIT_PAYMENT,
                            idempotency_key=f"payment:{locked.id}:credit",
                            currency=settings.SETTLEMENT_CURRENCY,
                            payment_id=locked.id,
                            description=f"Payment {locked.id} confirmed",
                            metadata={
                                "gross": str(settlement.gross),
                                "fee": str(settlement.fee),
                                "rate": str(quote.rate),
                                "provider_charge_id": charge.provider_charge_id,
                            },
                        )
                    )
                else:
                    logger.warning("Net settlement rounds to zero, no ledger credit", extra=log_context)

                if locked.order_id:
                    cls._mark_order_paid(locked.order_id, now)

                queue_merchant_event(
                    locked.merchant_id,
                    MerchantEventType.PAYMENT_CONFIRMED,
                    build_payment_event(locked, MerchantEventType.PAYMENT_CONFIRMED),
                )
        except ConflictingTransition as e:
            cls._record_conflict(payment, charge, e)
            raise

        logger.info(
            "Payment confirmed",
            extra={
                **log_context,
                "gross": str(settlement.gross),
                "fee": str(settlement.fee),
                "net": str(settlement.net),
                "rate": str(quote.rate),
            },
        )
        return ConfirmationResult(ConfirmationOutcome.CONFIRMED, locked, ledger_entry=entry)

    @staticmethod
    def _amount_mismatch(payment: Payment, charge: ChargeResult) -> bool:
        if charge.currency and charge.currency != payment.currency:
            return True
        tolerance = to_decimal(settings.PAYMENT_AMOUNT_TOLERANCE)
        return abs(to_decimal(charge.amount) - to_decimal(payment.amount)) > tolerance

    @classmethod
    def _mark_order_paid(cls, order_id: uuid.UUID, paid_at) -> None:
        guarded = IdempotencyGuard.acquire(
            Order,
            order_id,
            target=OrderStatus.PAID,
            allowed_from=[OrderStatus.PENDING_PAYMENT],
        )
        if guarded.is_noop:
            return
        guarded.instance.mark_paid(paid_at)
        IdempotencyGuard.commit(guarded, "paid_at")

    # =========================================================================
    # In flight
    # =========================================================================

    @classmethod
    def _mark_pending(cls, payment: Payment, charge: ChargeResult) -> ConfirmationResult:
        if payment.status != PaymentStatus.CREATED:
            outcome = ConfirmationOutcome.PENDING if payment.status == PaymentStatus.PENDING else ConfirmationOutcome.IGNORED
            cls.get_logger().info(
                "In-flight charge leaves payment unchanged",
                extra={
                    "payment_id": str(payment.id),
                    "provider_charge_id": charge.provider_charge_id,
                    "status": payment.status,
                    "charge_status": charge.status,
                },
            )
            return ConfirmationResult(outcome, payment)

        with transaction.atomic():
            guarded = IdempotencyGuard.acquire(
                Payment,
                payment.pk,
                target=PaymentStatus.PENDING,
                allowed_from=[PaymentStatus.CREATED],
                noop_from=[PaymentStatus.PENDING, *PaymentStatus.terminal()],
            )
            if guarded.is_noop:
                return ConfirmationResult(ConfirmationOutcome.IGNORED, guarded.instance)
            guarded.instance.submit()
            IdempotencyGuard.commit(guarded)

        return ConfirmationResult(ConfirmationOutcome.PENDING, guarded.instance)

    # =========================================================================
    # Rejected
    # =========================================================================

    @classmethod
    def _fail(cls, payment: Payment, charge: ChargeResult, *, reason: str, status_detail: str) -> ConfirmationResult:
        try:
            with transaction.atomic():
                guarded = IdempotencyGuard.acquire(
                    Payment,
                    payment.pk,
                    target=PaymentStatus.FAILED,
                    allowed_from=PaymentStatus.active(),
                )
                if guarded.is_noop:
                    return ConfirmationResult(ConfirmationOutcome.ALREADY_FAILED, guarded.instance, reason=reason)

                locked = guarded.instance
                locked.fail(
                    failed_at=timezone.now(),
                    reason=reason,
                    status_detail=status_detail,
                    provider_charge_id=charge.provider_charge_id or None,
                )
                IdempotencyGuard.commit(guarded, *cls.FAIL_FIELDS)
                queue_merchant_event(
                    locked.merchant_id,
                    MerchantEventType.PAYMENT_FAILED,
                    build_payment_event(locked, MerchantEventType.PAYMENT_FAILED),
                )
        except ConflictingTransition as e:
            cls._record_conflict(payment, charge, e)
            raise

        cls.get_logger().info(
            "Payment failed",
            extra={
                "payment_id": str(payment.id),
                "provider_charge_id": charge.provider_charge_id,
                "status_detail": status_detail,
            },
        )
        return ConfirmationResult(ConfirmationOutcome.FAILED, locked, reason=reason)

    # =========================================================================
    # Conflicts
    # =========================================================================

    @classmethod
    def _record_conflict(cls, payment: Payment, charge: ChargeResult, error: ConflictingTransition) -> None:
        cls.get_logger().warning(
            "Conflicting transition requires manual reconciliation",
            extra={
                "payment_id": str(payment.id),
                "provider_charge_id": charge.provider_charge_id,
                "current_state": error.current_state,
                "target_state": error.target_state,
            },
        )
        GatewayEvent.record(
            source=GatewayEventSource.ENGINE,
            event_type="conflicting_transition",
            payload={**error.details, "charge": charge.raw_response},
            provider_charge_id=charge.provider_charge_id,
            payment=payment,
            order=payment.order,
            error_message=error.message,
        )
