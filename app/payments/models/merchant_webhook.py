"""
Merchant webhook subscriptions and their delivery attempts.

MerchantWebhook is a merchant-owned endpoint with a signing secret and an
event filter. WebhookDelivery records the outcome of sending one event to
one endpoint; the redelivery sweep updates the same row on each retry.
"""

from __future__ import annotations

import secrets

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


def generate_webhook_secret() -> str:
    return f"whsec_{secrets.token_hex(32)}"


class MerchantWebhook(UUIDPrimaryKeyMixin, BaseModel):
    """
    A merchant endpoint that receives signed event notifications.

    Fields:
        merchant: Owner of the subscription
        url: HTTPS endpoint events are POSTed to
        secret_key: HMAC-SHA256 key used to sign every body sent
        events: Subscribed event types, e.g. ["payment.confirmed"]
        is_active: Inactive subscriptions receive nothing
    """

    merchant = models.ForeignKey(
        "payments.Merchant",
        on_delete=models.CASCADE,
        related_name="webhooks",
    )
    url = models.URLField(max_length=1000)
    secret_key = models.CharField(
        max_length=100,
        default=generate_webhook_secret,
        help_text="Shared secret for the signature header",
    )
    events = models.JSONField(
        default=list,
        blank=True,
        help_text="Subscribed event types",
    )
    description = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["merchant", "is_active"], name="webhook_merchant_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.url} ({self.merchant_id})"

    def is_subscribed_to(self, event_type: str) -> bool:
        return event_type in (self.events or [])


class WebhookDelivery(UUIDPrimaryKeyMixin, BaseModel):
    """
    Outcome of delivering one event to one webhook.

    delivered_at is set only when a 2xx response was observed. A row with
    attempt_count > 0, no delivered_at and a next_retry_at is waiting for
    the redelivery sweep; next_retry_at is cleared once attempts run out.
    """

    webhook = models.ForeignKey(
        MerchantWebhook,
        on_delete=models.CASCADE,
        related_name="deliveries",
    )
    event_id = models.UUIDField(
        help_text="Id of the event, also sent inside the payload",
    )
    event_type = models.CharField(max_length=100)
    payload = models.JSONField(
        help_text="Event payload as sent (re-serialized identically on retry)",
    )
    response_status = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(
        blank=True,
        help_text="Response body, truncated",
    )
    error_message = models.TextField(
        blank=True,
        help_text="Transport error when no response was received",
    )
    attempt_count = models.PositiveIntegerField(default=0)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    next_retry_at = models.DateTimeField(null=True, blank=True, db_index=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "webhook deliveries"
        constraints = [
            models.UniqueConstraint(
                fields=["webhook", "event_id"],
                name="unique_delivery_per_webhook_event",
            ),
        ]
        indexes = [
            models.Index(fields=["delivered_at", "next_retry_at"], name="delivery_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_type} -> {self.webhook_id} (attempts={self.attempt_count})"

    @property
    def is_delivered(self) -> bool:
        return self.delivered_at is not None
