"""
Outbound merchant webhooks.

WebhookDispatcher fans an event out to every active subscription of a
merchant, signs each body with the subscription's secret and records the
outcome in a WebhookDelivery row. Delivery is best-effort: a failing
endpoint never affects the other endpoints and never propagates to the
confirmation that produced the event.

Signing:
    body = canonical_json(payload)              # sorted keys, no whitespace
    X-DeltaPay-Signature: hex(HMAC-SHA256(secret, body))

Merchants verify by recomputing the HMAC over the raw request body.

Usage:
    from payments.services.merchant_webhooks import WebhookDispatcher

    deliveries = WebhookDispatcher.dispatch(merchant.id, "payment.confirmed", payload)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

from core.services import BaseService
from payments.models import MerchantWebhook, WebhookDelivery

if TYPE_CHECKING:
    from datetime import datetime

    from payments.models import Payment


EVENT_HEADER = "X-DeltaPay-Event"
DELIVERY_HEADER = "X-DeltaPay-Delivery"


def canonical_json(payload: dict[str, Any]) -> bytes:
    """Serialize a payload to the exact bytes that are signed and sent."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        cls=DjangoJSONEncoder,
    ).encode("utf-8")


def sign_payload(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of body keyed with secret."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def compute_next_retry_at(attempt_count: int, now: datetime | None = None) -> datetime | None:
    """
    When an undelivered event should be retried.

    Exponential backoff from MERCHANT_WEBHOOK_RETRY_BASE_SECONDS, capped at
    MERCHANT_WEBHOOK_RETRY_MAX_SECONDS. Returns None once attempt_count
    reaches MERCHANT_WEBHOOK_MAX_ATTEMPTS.
    """
    if attempt_count >= settings.MERCHANT_WEBHOOK_MAX_ATTEMPTS:
        return None
    now = now or timezone.now()
    delay = settings.MERCHANT_WEBHOOK_RETRY_BASE_SECONDS * (2 ** max(attempt_count - 1, 0))
    delay = min(delay, settings.MERCHANT_WEBHOOK_RETRY_MAX_SECONDS)
    return now + timedelta(seconds=delay)


def _money(value) -> str | None:
    return None if value is None else str(value)


def build_payment_event(payment: Payment, event_type: str, *, event_id: uuid.UUID | None = None) -> dict[str, Any]:
    """
    Snapshot a payment into a merchant event payload.

    All values are JSON-native (amounts as strings) so the payload can go
    through the Celery broker unchanged.
    """
    return {
        "id": str(event_id or uuid.uuid4()),
        "event": event_type,
        "created_at": timezone.now().isoformat(),
        "merchant_id": str(payment.merchant_id),
        "payment_id": str(payment.id),
        "order_id": str(payment.order_id) if payment.order_id else None,
        "data": {
            "status": payment.status,
            "amount": _money(payment.amount),
            "currency": payment.currency,
            "amount_settlement_gross": _money(payment.amount_settlement_gross),
            "fee_settlement": _money(payment.fee_settlement),
            "amount_settlement_net": _money(payment.amount_settlement_net),
            "settlement_currency": settings.SETTLEMENT_CURRENCY,
            "provider_charge_id": payment.provider_charge_id,
            "status_detail": payment.status_detail,
            "failure_reason": payment.failure_reason,
            "confirmed_at": payment.confirmed_at.isoformat() if payment.confirmed_at else None,
            "failed_at": payment.failed_at.isoformat() if payment.failed_at else None,
        },
    }


def queue_merchant_event(merchant_id, event_type: str, payload: dict[str, Any]) -> None:
    """Queue dispatch for after the current transaction commits."""
    from payments.tasks import dispatch_merchant_event

    transaction.on_commit(
        lambda: dispatch_merchant_event.delay(str(merchant_id), event_type, payload)
    )


class WebhookDispatcher(BaseService):
    """
    Signed fan-out of merchant events.

    transport can be replaced with an httpx transport (httpx.MockTransport
    in tests) and is passed to every client the dispatcher opens.
    """

    transport: httpx.BaseTransport | None = None

    @classmethod
    def _client(cls) -> httpx.Client:
        return httpx.Client(
            timeout=settings.MERCHANT_WEBHOOK_TIMEOUT_SECONDS,
            transport=cls.transport,
            follow_redirects=False,
        )

    @classmethod
    def subscriptions_for(cls, merchant_id, event_type: str) -> list[MerchantWebhook]:
        webhooks = MerchantWebhook.objects.filter(merchant_id=merchant_id, is_active=True)
        return [webhook for webhook in webhooks if webhook.is_subscribed_to(event_type)]

    @classmethod
    def dispatch(cls, merchant_id, event_type: str, payload: dict[str, Any]) -> list[WebhookDelivery]:
        """
        Deliver one event to every subscribed endpoint of a merchant.

        Args:
            merchant_id: Merchant whose subscriptions receive the event
            event_type: e.g. "payment.confirmed"
            payload: Event payload; payload["id"] identifies the event

        Returns:
            One WebhookDelivery per subscribed endpoint
        """
        logger = cls.get_logger()
        webhooks = cls.subscriptions_for(merchant_id, event_type)
        if not webhooks:
            logger.info(
                "No webhook subscribed to event",
                extra={"merchant_id": str(merchant_id), "event_type": event_type},
            )
            return []

        event_id = payload.get("id") or str(uuid.uuid4())
        deliveries = []
        with cls._client() as client:
            for webhook in webhooks:
                delivery, created = WebhookDelivery.objects.get_or_create(
                    webhook=webhook,
                    event_id=event_id,
                    defaults={"event_type": event_type, "payload": payload},
                )
                if not created and delivery.is_delivered:
                    deliveries.append(delivery)
                    continue
                deliveries.append(cls._attempt(client, delivery))

        logger.info(
            "Event dispatched",
            extra={
                "merchant_id": str(merchant_id),
                "event_type": event_type,
                "event_id": str(event_id),
                "endpoints": len(deliveries),
                "delivered": sum(1 for d in deliveries if d.is_delivered),
            },
        )
        return deliveries

    @classmethod
    def redeliver(cls, delivery: WebhookDelivery) -> WebhookDelivery:
        """Re-send a stored delivery with the same body and signature."""
        if delivery.is_delivered:
            return delivery
        with cls._client() as client:
            return cls._attempt(client, delivery)

    @classmethod
    def _attempt(cls, client: httpx.Client, delivery: WebhookDelivery) -> WebhookDelivery:
        logger = cls.get_logger()
        webhook = delivery.webhook
        body = canonical_json(delivery.payload)
        headers = {
            "Content-Type": "application/json",
            settings.MERCHANT_WEBHOOK_SIGNATURE_HEADER: sign_payload(webhook.secret_key, body),
            EVENT_HEADER: delivery.event_type,
            DELIVERY_HEADER: str(delivery.event_id),
        }
        log_context = {
            "webhook_id": str(webhook.id),
            "event_id": str(delivery.event_id),
            "event_type": delivery.event_type,
            "attempt": delivery.attempt_count + 1,
        }

        now = timezone.now()
        start_time = time.monotonic()
        delivery.attempt_count += 1
        delivery.last_attempt_at = now
        try:
            response = client.post(webhook.url, content=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            delivery.response_status = None
            delivery.response_body = ""
            delivery.error_message = f"{type(e).__name__}: {e}"[:1000]
            delivery.next_retry_at = compute_next_retry_at(delivery.attempt_count, now)
            logger.warning(
                "Webhook delivery failed",
                extra={**log_context, "error": delivery.error_message},
            )
        else:
            duration_ms = (time.monotonic() - start_time) * 1000
            delivery.response_status = response.status_code
            delivery.response_body = response.text[: settings.MERCHANT_WEBHOOK_RESPONSE_BODY_LIMIT]
            delivery.error_message = ""
            if response.is_success:
                delivery.delivered_at = now
                delivery.next_retry_at = None
                logger.info(
                    "Webhook delivered",
                    extra={**log_context, "status_code": response.status_code, "duration_ms": round(duration_ms, 2)},
                )
            else:
                delivery.next_retry_at = compute_next_retry_at(delivery.attempt_count, now)
                logger.warning(
                    "Webhook endpoint returned non-2xx",
                    extra={**log_context, "status_code": response.status_code, "duration_ms": round(duration_ms, 2)},
                )

        delivery.save(
            update_fields=[
                "attempt_count",
                "last_attempt_at",
                "response_status",
                "response_body",
                "error_message",
                "delivered_at",
                "next_retry_at",
                "updated_at",
            ]
        )
        return delivery
