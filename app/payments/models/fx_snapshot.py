"""
FX rate snapshot captured when a payment is confirmed.
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.exceptions import PaymentValidationError


class FXSnapshot(UUIDPrimaryKeyMixin, BaseModel):
    """
    Immutable record of the rate used to convert one payment.

    Each snapshot belongs to exactly one Payment (one-to-one from
    Payment.fx_snapshot) and is never edited after insert.

    Fields:
        from_currency: Local currency the payment was priced in
        to_currency: Settlement currency
        rate: Units of to_currency per one unit of from_currency
        rate_inverse: Units of from_currency per one unit of to_currency
        source: Where the rate came from (provider name, "fixed", "fallback")
        captured_at: When the rate was observed
    """

    from_currency = models.CharField(max_length=10)
    to_currency = models.CharField(max_length=10)
    rate = models.DecimalField(
        max_digits=24,
        decimal_places=10,
        help_text="to_currency per unit of from_currency",
    )
    rate_inverse = models.DecimalField(
        max_digits=24,
        decimal_places=10,
        help_text="from_currency per unit of to_currency",
    )
    source = models.CharField(
        max_length=50,
        help_text="Rate provider or policy that produced the rate",
    )
    captured_at = models.DateTimeField(
        help_text="When the rate was observed",
    )

    class Meta:
        ordering = ["-captured_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(rate__gt=0),
                name="fx_snapshot_rate_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.from_currency}->{self.to_currency} @ {self.rate}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PaymentValidationError(
                "FX snapshots are immutable once recorded",
                details={"fx_snapshot_id": str(self.pk)},
            )
        super().save(*args, **kwargs)
