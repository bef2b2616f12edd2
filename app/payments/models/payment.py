"""
Payment model: one attempted charge for an order or a product link.

State Machine:
    created → pending → confirmed
    created/pending → expired
    created/pending → failed

Transitions are declared with django-fsm so illegal moves raise
TransitionNotAllowed. Persisting a transition goes through
payments.guards.IdempotencyGuard, which writes the new status with a
compare-and-set on (status, version) instead of Model.save().

Invariants:
    - amount and currency are a snapshot taken at creation and never change
    - a confirmed payment always has confirmed_at and settlement amounts
    - terminal states (confirmed, expired, failed) are never left
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.exceptions import PaymentValidationError
from payments.state_machines import Currency, PaymentStatus


def generate_idempotency_key() -> str:
    return f"pay_{uuid.uuid4().hex}"


def default_expires_at():
    return timezone.now() + timedelta(minutes=settings.PAYMENT_EXPIRATION_MINUTES)


class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    One attempted charge through the payment gateway.

    The same Payment is referenced by the gateway preference (as
    external_reference when there is no order), by direct charges (through
    its idempotency_key) and by the merchant webhook payload.

    Usage:
        payment = Payment.objects.create(
            merchant=merchant,
            order=order,
            amount=Decimal("1000.00"),
            currency=Currency.ARS,
        )
    """

    SNAPSHOT_FIELDS = ("amount", "currency")

    # ==========================================================================
    # Relationships
    # ==========================================================================

    merchant = models.ForeignKey(
        "payments.Merchant",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Merchant receiving the funds",
    )
    order = models.ForeignKey(
        "payments.Order",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
        help_text="Order settled by this payment (e-commerce flow only)",
    )
    product_reference = models.CharField(
        max_length=255,
        blank=True,
        help_text="Product or payment link this payment was created from",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.CREATED,
        choices=PaymentStatus.choices,
        protected=True,
        db_index=True,
        help_text="Current payment status",
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every write, used for compare-and-set",
    )

    # ==========================================================================
    # Amount snapshot (immutable)
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount in the local currency, fixed at creation",
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.ARS,
        help_text="Local currency, fixed at creation",
    )

    # ==========================================================================
    # Gateway references
    # ==========================================================================

    idempotency_key = models.CharField(
        max_length=64,
        unique=True,
        default=generate_idempotency_key,
        editable=False,
        help_text="Sent to the gateway so retried charges have one effect",
    )
    gateway_preference_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway checkout preference id, once issued",
    )
    gateway_redirect_url = models.URLField(max_length=1000, blank=True)
    gateway_sandbox_redirect_url = models.URLField(max_length=1000, blank=True)
    provider_charge_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Gateway charge id of the charge that settled this payment",
    )
    status_detail = models.CharField(
        max_length=100,
        blank=True,
        help_text="Gateway status detail code of the last applied charge",
    )
    failure_reason = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable reason the payment failed",
    )
    customer_email = models.EmailField(blank=True)

    # ==========================================================================
    # Settlement (filled on confirmation)
    # ==========================================================================

    fx_snapshot = models.OneToOneField(
        "payments.FXSnapshot",
        on_delete=models.PROTECT,
        related_name="payment",
        null=True,
        blank=True,
        help_text="Rate used to convert this payment",
    )
    amount_settlement_gross = models.DecimalField(
        max_digits=20, decimal_places=6, null=True, blank=True
    )
    fee_settlement = models.DecimalField(
        max_digits=20, decimal_places=6, null=True, blank=True
    )
    amount_settlement_net = models.DecimalField(
        max_digits=20, decimal_places=6, null=True, blank=True
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    expires_at = models.DateTimeField(
        default=default_expires_at,
        db_index=True,
        help_text="After this moment the sweeper expires the payment",
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="payment_status_expires_idx"),
            models.Index(fields=["merchant", "status"], name="payment_merchant_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=~Q(status=PaymentStatus.CONFIRMED)
                | (
                    Q(confirmed_at__isnull=False)
                    & Q(amount_settlement_net__isnull=False)
                    & Q(fx_snapshot__isnull=False)
                ),
                name="payment_confirmed_has_settlement",
            ),
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(status__in=[PaymentStatus.CREATED, PaymentStatus.PENDING]),
                name="payment_one_open_per_order",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment {self.id} ({self.status})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._remember_snapshot()
        return instance

    def _remember_snapshot(self) -> None:
        self._loaded_snapshot = tuple(
            self.__dict__.get(name) for name in self.SNAPSHOT_FIELDS
        )

    def save(self, *args, **kwargs):
        """
        Save with snapshot protection and version increment.

        Raises:
            PaymentValidationError: If amount or currency changed after creation
        """
        if not self._state.adding:
            loaded = getattr(self, "_loaded_snapshot", None)
            current = tuple(getattr(self, name) for name in self.SNAPSHOT_FIELDS)
            if loaded is not None and loaded != current:
                raise PaymentValidationError(
                    "Payment amount snapshot cannot be changed",
                    details={"payment_id": str(self.pk)},
                )
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        self._remember_snapshot()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentStatus.terminal()

    @property
    def has_expired(self) -> bool:
        """True once expires_at has passed, whatever the stored status."""
        return self.expires_at is not None and self.expires_at <= timezone.now()

    # ==========================================================================
    # Transitions
    # ==========================================================================

    @transition(field=status, source=PaymentStatus.CREATED, target=PaymentStatus.PENDING)
    def submit(self) -> None:
        """Checkout handed the payment to the gateway."""

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.PENDING],
        target=PaymentStatus.CONFIRMED,
    )
    def confirm(
        self,
        *,
        confirmed_at,
        fx_snapshot,
        gross,
        fee,
        net,
        provider_charge_id: str,
        status_detail: str = "",
    ) -> None:
        self.confirmed_at = confirmed_at
        self.fx_snapshot = fx_snapshot
        self.amount_settlement_gross = gross
        self.fee_settlement = fee
        self.amount_settlement_net = net
        self.provider_charge_id = provider_charge_id
        self.status_detail = status_detail

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.PENDING],
        target=PaymentStatus.FAILED,
    )
    def fail(self, *, failed_at, reason: str, status_detail: str = "", provider_charge_id=None) -> None:
        self.failed_at = failed_at
        self.failure_reason = reason[:255]
        self.status_detail = status_detail
        if provider_charge_id:
            self.provider_charge_id = provider_charge_id

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.PENDING],
        target=PaymentStatus.EXPIRED,
    )
    def expire(self, *, expired_at) -> None:
        self.expired_at = expired_at
