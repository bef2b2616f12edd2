"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for the payments domain)
    ├── PaymentNotFoundError - Payment/Order lookup failures (also NotFoundError)
    ├── PaymentValidationError - Request or state validation failures (also ValidationError)
    ├── ExpiredPayment - New attempt against an expired Payment/Order
    ├── AmountMismatch - Charged amount differs from the payment snapshot
    ├── RateUnavailable - No FX rate for the settlement conversion (retry)
    ├── InvalidSignatureError - Inbound callback failed verification
    └── GatewayError - Base for payment gateway errors (also ExternalServiceError)
        ├── GatewayUnavailable - Network failure, timeout, 429 or 5xx (retry)
        └── GatewayRejected - 4xx, carries the provider error body

    ConflictingTransition - Transition requested over another terminal state
    StaleRecordError - Compare-and-set lost a race (inherits ConflictError)
    LockAcquisitionError - Distributed lock unavailable (inherits ConflictError)

Propagation:
    Gateway errors bubble unchanged to the entry point. Confirmation errors
    (AmountMismatch, ConflictingTransition) are caught by entry points and
    turned into stable user-facing messages; the full context goes to the
    GatewayEvent audit log.

Usage:
    from payments.exceptions import GatewayUnavailable, ConflictingTransition

    if rows_updated == 0:
        raise StaleRecordError(
            f"Payment {pk} was modified by another process",
            details={"pk": str(pk), "expected_status": "pending"},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            DirectChargeHandler.charge(request)
        except PaymentError as e:
            logger.error("Charge failed", extra={"error_code": e.error_code})
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "PAYMENT_ERROR"
    is_retryable: bool = False


class PaymentNotFoundError(PaymentError, NotFoundError):
    """Raised when a Payment or Order cannot be found."""

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when a request does not fit the record's current state.

    Use for:
    - Charging an order that is not pending payment
    - Issuing a preference for a payment that is not pending
    - Changing the immutable amount snapshot
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class ExpiredPayment(PaymentError):
    """
    Raised when a charge or preference is requested for an expired record.

    Entry points render this as a plain "expired" status, not as an error.
    """

    default_error_code: str = "PAYMENT_EXPIRED"


class AmountMismatch(PaymentError):
    """
    Raised when the gateway's charged amount differs from the snapshot.

    Treated as a fraud or defect signal: the payment is failed, nothing is
    credited and no payment.confirmed event is sent.
    """

    default_error_code: str = "AMOUNT_MISMATCH"

    def __init__(self, payment_id, expected, received, currency: str = ""):
        super().__init__(
            f"Charged amount {received} does not match payment amount {expected}",
            details={
                "payment_id": str(payment_id),
                "expected": str(expected),
                "received": str(received),
                "currency": currency,
            },
        )
        self.expected = expected
        self.received = received


class RateUnavailable(PaymentError):
    """
    Raised when no FX rate can be obtained for a settlement conversion.

    Transient: confirmation is retried later rather than credited with a
    guessed rate (see FX_FALLBACK_POLICY).
    """

    default_error_code: str = "FX_RATE_UNAVAILABLE"
    is_retryable: bool = True


class InvalidSignatureError(PaymentError):
    """Raised when an inbound gateway callback fails signature verification."""

    default_error_code: str = "INVALID_SIGNATURE"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentError, ExternalServiceError):
    """
    Base exception for payment gateway errors.

    Attributes:
        status_code: HTTP status returned by the gateway, if any
        provider_error: Parsed error body returned by the gateway
    """

    default_error_code: str = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        provider_error: Any = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.provider_error = provider_error


class GatewayUnavailable(GatewayError):
    """
    The gateway could not be reached or answered with 429/5xx.

    Transient. The operation may have succeeded on the gateway's side;
    retries must reuse the same idempotency key.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayRejected(GatewayError):
    """
    The gateway refused the request with a 4xx.

    Permanent for this attempt. provider_error holds the gateway's body so
    the caller can map its cause to a user message.
    """

    default_error_code: str = "GATEWAY_REJECTED"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class ConflictingTransition(ConflictError):
    """
    Raised when a transition is requested over a different terminal state.

    A late approval never overrides an expired or failed payment. The
    conflict is logged and recorded for manual reconciliation.
    """

    default_error_code: str = "CONFLICTING_TRANSITION"

    def __init__(self, message: str, current_state: str = "", target_state: str = "", details=None):
        details = details or {}
        details.setdefault("current_state", current_state)
        details.setdefault("target_state", target_state)
        super().__init__(message, details=details)
        self.current_state = current_state
        self.target_state = target_state


class StaleRecordError(ConflictError):
    """
    Raised when a compare-and-set update matched no row.

    Another process changed the record between the guarded read and the
    write. Celery tasks retry on this; the retry re-reads and usually
    resolves to a no-op.
    """

    default_error_code: str = "STALE_RECORD"
    is_retryable: bool = True


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Attributes:
        details: Contains key and timeout
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"
