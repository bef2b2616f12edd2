"""
Payment gateway adapter (MercadoPago HTTP API).

This module provides the GatewayAdapter class which encapsulates all
gateway API interactions. Every outbound gateway call goes through this
adapter for consistent authentication, timeouts, error translation and
logging. It never writes to the database; persistence is the caller's job.

Operations:
- create_preference: hosted checkout session for a Payment
- submit_charge: synchronous tokenized card charge
- fetch_charge: authoritative charge lookup used by the callback path
- verify_callback_signature: x-signature check for inbound callbacks

Error translation:
- Network errors, timeouts, 429 and 5xx → GatewayUnavailable (retryable)
- Other 4xx → GatewayRejected with the provider error body attached

Configuration (via settings):
- GATEWAY_API_BASE_URL: API root (default: https://api.mercadopago.com)
- GATEWAY_ACCESS_TOKEN: Bearer credential
- GATEWAY_API_TIMEOUT_SECONDS: Per-call timeout
- GATEWAY_WEBHOOK_SECRET: Callback signature secret
- GATEWAY_STATEMENT_DESCRIPTOR: Text on the payer's card statement

Usage:
    from payments.adapters import GatewayAdapter, ChargeRequest, PayerInfo

    result = GatewayAdapter.submit_charge(
        order,
        payment,
        ChargeRequest(
            token="card_token",
            payment_method_id="visa",
            installments=1,
            payer=PayerInfo(email="payer@example.com"),
            idempotency_key=payment.idempotency_key,
        ),
    )
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings

from payments.exceptions import (
    GatewayRejected,
    GatewayUnavailable,
    InvalidSignatureError,
)
from payments.ledger.types import to_decimal
from payments.state_machines import ChargeStatus

if TYPE_CHECKING:
    from payments.models import Order, Payment


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class PayerInfo:
    """
    Payer details sent with a direct charge.

    Attributes:
        email: Payer email (required by the gateway)
        identification_type: Document type, e.g. "DNI"
        identification_number: Document number
    """

    email: str
    identification_type: str | None = None
    identification_number: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"email": self.email}
        if self.identification_type and self.identification_number:
            payload["identification"] = {
                "type": self.identification_type,
                "number": self.identification_number,
            }
        return payload


@dataclass
class ChargeRequest:
    """
    Parameters for a tokenized card charge.

    Attributes:
        token: Card token produced by the gateway's client SDK
        payment_method_id: Card brand / method, e.g. "visa"
        installments: Number of installments (at least 1)
        payer: Payer details
        idempotency_key: Stable key reused across retries of this submission
        issuer_id: Card issuer, when the SDK provides one
    """

    token: str
    payment_method_id: str
    payer: PayerInfo
    idempotency_key: str
    installments: int = 1
    issuer_id: str | None = None

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError("token is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if self.installments < 1:
            raise ValueError("installments must be at least 1")


@dataclass
class ChargeResult:
    """
    Charge as reported by the gateway.

    Attributes:
        provider_charge_id: Gateway charge id
        status: Gateway status (see ChargeStatus)
        status_detail: Gateway status detail code, e.g. cc_rejected_high_risk
        amount: Charged amount in the local currency
        currency: Local currency code
        external_reference: Our order or payment id, echoed back
        raw_response: Full gateway response for the audit log
    """

    provider_charge_id: str
    status: str
    status_detail: str = ""
    amount: Decimal = Decimal("0")
    currency: str = ""
    external_reference: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ChargeResult:
        return cls(
            provider_charge_id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            status_detail=str(data.get("status_detail") or ""),
            amount=to_decimal(data.get("transaction_amount") or 0),
            currency=str(data.get("currency_id") or ""),
            external_reference=str(data.get("external_reference") or ""),
            raw_response=data,
        )

    @property
    def is_approved(self) -> bool:
        return self.status == ChargeStatus.APPROVED

    @property
    def is_in_flight(self) -> bool:
        return self.status in ChargeStatus.in_flight()


@dataclass
class PreferenceResult:
    """
    Hosted checkout preference.

    Attributes:
        preference_id: Gateway preference id
        redirect_url: URL to send the payer to
        sandbox_redirect_url: Sandbox variant of redirect_url
        reused: True when an already stored preference was returned
        raw_response: Gateway response (empty when reused)
    """

    preference_id: str
    redirect_url: str
    sandbox_redirect_url: str = ""
    reused: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Gateway Adapter
# =============================================================================


class GatewayAdapter:
    """
    Adapter for the payment gateway's HTTP API.

    All methods are classmethods; an httpx.Client is opened per call.
    Safe to use from web workers and Celery workers alike.

    transport can be replaced (tests use httpx.MockTransport).
    """

    transport: httpx.BaseTransport | None = None

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def _client(cls) -> httpx.Client:
        return httpx.Client(
            base_url=settings.GATEWAY_API_BASE_URL,
            timeout=settings.GATEWAY_API_TIMEOUT_SECONDS,
            headers={
                "Authorization": f"Bearer {settings.GATEWAY_ACCESS_TOKEN}",
                "Content-Type": "application/json",
            },
            transport=cls.transport,
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def create_preference(cls, payment: Payment, title: str | None = None) -> PreferenceResult:
        """
        Create a hosted checkout preference for a payment.

        If the payment already has a preference id it is returned unchanged
        and no remote resource is created.

        Args:
            payment: Payment to collect
            title: Item title shown by the gateway (defaults to merchant name)

        Returns:
            PreferenceResult

        Raises:
            GatewayUnavailable: Network failure, timeout, 429 or 5xx
            GatewayRejected: Any other 4xx
        """
        if payment.gateway_preference_id:
            return PreferenceResult(
                preference_id=payment.gateway_preference_id,
                redirect_url=payment.gateway_redirect_url,
                sandbox_redirect_url=payment.gateway_sandbox_redirect_url,
                reused=True,
            )

        reference = str(payment.order_id or payment.id)
        return_url = f"{settings.CHECKOUT_BASE_URL.rstrip('/')}/checkout/{reference}"
        body = {
            "items": [
                {
                    "id": payment.product_reference or str(payment.id),
                    "title": title or payment.merchant.name,
                    "quantity": 1,
                    "currency_id": payment.currency,
                    "unit_price": float(payment.amount),
                }
            ],
            "external_reference": reference,
            "notification_url": (
                f"{settings.PLATFORM_BASE_URL.rstrip('/')}/api/v1/payments/webhooks/gateway/"
            ),
            "back_urls": {
                "success": f"{return_url}?status=approved",
                "pending": f"{return_url}?status=pending",
                "failure": f"{return_url}?status=failure",
            },
            "auto_return": "approved",
            "expires": True,
            "date_of_expiration": payment.expires_at.isoformat(),
            "expiration_date_to": payment.expires_at.isoformat(),
            "statement_descriptor": settings.GATEWAY_STATEMENT_DESCRIPTOR,
            "metadata": {
                "payment_id": str(payment.id),
                "merchant_id": str(payment.merchant_id),
                "order_id": str(payment.order_id) if payment.order_id else None,
            },
        }
        if payment.customer_email:
            body["payer"] = {"email": payment.customer_email}

        data = cls._request(
            "POST",
            "/checkout/preferences",
            operation="create_preference",
            json=body,
            idempotency_key=f"preference:{payment.idempotency_key}",
            log_context={"payment_id": str(payment.id)},
        )
        return PreferenceResult(
            preference_id=str(data["id"]),
            redirect_url=data.get("init_point", ""),
            sandbox_redirect_url=data.get("sandbox_init_point", ""),
            raw_response=data,
        )

    @classmethod
    def submit_charge(cls, order: Order | None, payment: Payment, request: ChargeRequest) -> ChargeResult:
        """
        Submit a tokenized card charge.

        The gateway de-duplicates on request.idempotency_key, so a network
        retry with the same key returns the original charge instead of
        charging twice.

        Args:
            order: Order being paid, or None for a standalone payment
            payment: Payment carrying the amount snapshot
            request: Card token, payer and idempotency key

        Returns:
            ChargeResult (rejected cards come back as status=rejected, not as errors)

        Raises:
            GatewayUnavailable: Network failure, timeout, 429 or 5xx
            GatewayRejected: Invalid token or request (4xx)
        """
        reference = str(order.id if order is not None else payment.id)
        body: dict[str, Any] = {
            "token": request.token,
            "transaction_amount": float(payment.amount),
            "installments": request.installments,
            "payment_method_id": request.payment_method_id,
            "payer": request.payer.to_payload(),
            "description": f"{payment.merchant.name} #{reference[:8]}",
            "external_reference": reference,
            "statement_descriptor": settings.GATEWAY_STATEMENT_DESCRIPTOR,
            "metadata": {"payment_id": str(payment.id), "merchant_id": str(payment.merchant_id)},
        }
        if request.issuer_id:
            body["issuer_id"] = request.issuer_id

        data = cls._request(
            "POST",
            "/v1/payments",
            operation="submit_charge",
            json=body,
            idempotency_key=request.idempotency_key,
            log_context={"payment_id": str(payment.id), "order_id": str(order.id) if order else None},
        )
        return ChargeResult.from_response(data)

    @classmethod
    def fetch_charge(cls, provider_charge_id: str) -> ChargeResult:
        """
        Fetch the authoritative state of a charge.

        Raises:
            GatewayUnavailable: Network failure, timeout, 429 or 5xx
            GatewayRejected: Unknown charge or other 4xx
        """
        data = cls._request(
            "GET",
            f"/v1/payments/{provider_charge_id}",
            operation="fetch_charge",
            log_context={"provider_charge_id": provider_charge_id},
        )
        return ChargeResult.from_response(data)

    # =========================================================================
    # Callback Verification
    # =========================================================================

    @classmethod
    def verify_callback_signature(
        cls,
        x_signature: str | None,
        x_request_id: str | None,
        data_id: str,
    ) -> None:
        """
        Verify the gateway's x-signature header on an inbound callback.

        The header looks like "ts=1704908010,v1=<hex>"; v1 is the
        HMAC-SHA256 of "id:<data.id>;request-id:<x-request-id>;ts:<ts>;"
        keyed with GATEWAY_WEBHOOK_SECRET.

        Raises:
            InvalidSignatureError: Missing, malformed or mismatched signature
        """
        logger = cls.get_logger()
        secret = settings.GATEWAY_WEBHOOK_SECRET
        if not secret:
            if settings.GATEWAY_WEBHOOK_ALLOW_UNSIGNED:
                logger.warning("Gateway callback accepted without signature check: no secret configured")
                return
            raise InvalidSignatureError("Gateway webhook secret is not configured")

        if not x_signature or not x_request_id:
            raise InvalidSignatureError("Missing signature headers")

        parts = {}
        for part in x_signature.split(","):
            if "=" in part:
                key, value = part.split("=", 1)
                parts[key.strip()] = value.strip()

        ts, received = parts.get("ts"), parts.get("v1")
        if not ts or not received:
            raise InvalidSignatureError("Malformed signature header")

        manifest = f"id:{data_id};request-id:{x_request_id};ts:{ts};"
        expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, received):
            raise InvalidSignatureError("Signature mismatch")

    # =========================================================================
    # HTTP Plumbing
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger = cls.get_logger()
        log_context = {"operation": operation, **(log_context or {})}
        headers = {"X-Idempotency-Key": idempotency_key} if idempotency_key else None

        start_time = time.monotonic()
        logger.info("Starting gateway operation", extra=log_context)
        try:
            with cls._client() as client:
                response = client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error("Gateway timeout", extra={**log_context, "duration_ms": duration_ms})
            raise GatewayUnavailable(
                f"Gateway timed out during {operation}",
                details={"operation": operation},
            ) from e
        except httpx.HTTPError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "Gateway connection error",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayUnavailable(
                f"Gateway unreachable during {operation}",
                details={"operation": operation, "error": str(e)},
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log_context = {**log_context, "status_code": response.status_code, "duration_ms": duration_ms}

        if response.status_code == 429 or response.status_code >= 500:
            logger.error("Gateway unavailable", extra=log_context)
            raise GatewayUnavailable(
                f"Gateway returned {response.status_code} during {operation}",
                status_code=response.status_code,
                provider_error=cls._parse_body(response),
            )
        if response.status_code >= 400:
            provider_error = cls._parse_body(response)
            logger.warning("Gateway rejected request", extra=log_context)
            raise GatewayRejected(
                f"Gateway rejected {operation}",
                status_code=response.status_code,
                provider_error=provider_error,
            )

        data = cls._parse_body(response)
        if not isinstance(data, dict):
            raise GatewayUnavailable(
                f"Gateway returned an unreadable body during {operation}",
                status_code=response.status_code,
            )
        logger.info("Gateway operation completed", extra=log_context)
        return data

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text[:1000]}
