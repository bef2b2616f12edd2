"""
Merchant model.

A Merchant owns payments, orders, webhook subscriptions and a balance in
the settlement currency. Onboarding and profile management live outside
this service; only the fields the confirmation path needs are kept here.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import Currency


class Merchant(UUIDPrimaryKeyMixin, BaseModel):
    """
    A business receiving payments through the platform.

    Fields:
        name: Display name, also used as the checkout item description
        email: Contact address
        fee_percentage: Platform fee taken from each confirmed payment
        default_currency: Local currency new payments default to
        balance: Current balance in the settlement currency
        is_active: Inactive merchants receive no new payments

    balance is only written by LedgerService together with the ledger entry
    that moves it, so the sum of a merchant's entries always equals it.
    """

    name = models.CharField(
        max_length=200,
        help_text="Merchant display name",
    )
    email = models.EmailField(
        blank=True,
        help_text="Merchant contact email",
    )
    fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
        help_text="Platform fee percentage applied to confirmed payments",
    )
    default_currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.ARS,
        help_text="Default local currency for new payments",
    )
    balance = models.DecimalField(
        max_digits=20,
        decimal_places=6,
        default=Decimal("0"),
        help_text="Balance in the settlement currency, maintained by the ledger",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether the merchant accepts payments",
    )

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(fee_percentage__gte=0) & Q(fee_percentage__lte=100),
                name="merchant_fee_percentage_range",
            ),
        ]

    def __str__(self) -> str:
        return self.name
