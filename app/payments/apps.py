"""
Payments app configuration.

This app provides the checkout backend:
- Payments and orders with guarded status transitions
- Gateway preferences, direct charges and callbacks
- Merchant balance ledger in the settlement currency
- Signed merchant webhooks
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
