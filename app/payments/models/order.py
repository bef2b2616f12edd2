"""
Order model for the e-commerce checkout flow.

An Order groups customer and shipping data with the Payment that settles
it. Its status only moves forward:

    pending_payment → paid      (ConfirmationEngine)
    pending_payment → expired   (ExpirationSweeper)
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import Currency, OrderStatus


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer order awaiting (or settled by) a payment.

    paid implies the order's payment is confirmed. The reverse may lag
    briefly while the confirming transaction commits.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    merchant = models.ForeignKey(
        "payments.Merchant",
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Merchant selling the order",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.PENDING_PAYMENT,
        choices=OrderStatus.choices,
        protected=True,
        help_text="Current order status",
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every write, used for compare-and-set",
    )

    # ==========================================================================
    # Customer and totals
    # ==========================================================================

    customer_name = models.CharField(max_length=200, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=50, blank=True)
    shipping_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="Shipping address as entered at checkout",
    )
    total_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Order total in the local currency",
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.ARS,
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["merchant", "status"], name="order_merchant_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount__gt=0),
                name="order_total_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Order {self.id} ({self.status})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            self.version = F("version") + 1
        super().save(*args, **kwargs)

    # ==========================================================================
    # Transitions
    # ==========================================================================

    @transition(field=status, source=OrderStatus.PENDING_PAYMENT, target=OrderStatus.PAID)
    def mark_paid(self, paid_at) -> None:
        self.paid_at = paid_at

    @transition(field=status, source=OrderStatus.PENDING_PAYMENT, target=OrderStatus.EXPIRED)
    def expire(self, expired_at) -> None:
        self.expired_at = expired_at
