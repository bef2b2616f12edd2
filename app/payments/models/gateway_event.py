"""
GatewayEvent model: append-only audit log of gateway traffic.

Every inbound callback, every fetched or direct charge response, every
preference the gateway returns, and every confirmation problem the
engine wants a human to look at is written here verbatim. Rows never
change after insert and are used for replay and debugging only; they do
not drive domain state.

Usage:
    from payments.models import GatewayEvent
    from payments.state_machines import GatewayEventSource

    event = GatewayEvent.record(
        source=GatewayEventSource.CALLBACK,
        event_type="callback.payment",
        payload=body,
        provider_charge_id=data_id,
    )
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.exceptions import PaymentValidationError
from payments.state_machines import GatewayEventSource


class GatewayEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    One raw payload exchanged with the gateway, or one engine finding.

    Fields:
        source: Which path produced the row
        event_type: Free-form type, e.g. "callback.payment", "amount_mismatch"
        provider_charge_id: Gateway charge id, when known
        payment / order: Domain records the payload refers to, when resolved
        payload: The payload exactly as received (or the finding's context)
        error_message: Processing error attached at insert time, if any
    """

    source = models.CharField(
        max_length=30,
        choices=GatewayEventSource.choices,
        help_text="Path that produced this event",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Event type, e.g. callback.payment or amount_mismatch",
    )
    provider_charge_id = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Gateway charge id referenced by the payload",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="gateway_events",
    )
    order = models.ForeignKey(
        "payments.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="gateway_events",
    )
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Payload exactly as received",
    )
    error_message = models.TextField(
        blank=True,
        help_text="Error observed while handling this payload",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["source", "created_at"], name="gateway_event_source_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.source}:{self.event_type} ({self.id})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PaymentValidationError(
                "Gateway events are append-only",
                details={"gateway_event_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PaymentValidationError(
            "Gateway events are append-only",
            details={"gateway_event_id": str(self.pk)},
        )

    @classmethod
    def record(
        cls,
        *,
        source: str,
        event_type: str,
        payload,
        provider_charge_id: str | None = None,
        payment=None,
        order=None,
        error_message: str = "",
    ) -> GatewayEvent:
        """Insert one audit row."""
        return cls.objects.create(
            source=source,
            event_type=event_type,
            payload=payload if payload is not None else {},
            provider_charge_id=str(provider_charge_id or ""),
            payment=payment,
            order=order,
            error_message=error_message,
        )
