"""
Payment admin configuration.

Merchants, orders, payments and webhook subscriptions can be created here.
Statuses, settlement amounts and the amount snapshot are read-only: state
changes go through the service layer. Ledger entries, FX snapshots,
gateway events and webhook deliveries are audit records and cannot be
added, changed or deleted.
"""

from django.conf import settings
from django.contrib import admin

from payments.ledger.models import LedgerEntry
from payments.ledger.services import LedgerService
from payments.ledger.types import Money
from payments.models import (
    FXSnapshot,
    GatewayEvent,
    Merchant,
    MerchantWebhook,
    Order,
    Payment,
    WebhookDelivery,
)


class ReadOnlyAdminMixin:
    """Admin for append-only audit models."""

    def has_add_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Merchant)
class MerchantAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "email", "fee_percentage", "balance", "default_currency", "is_active", "created_at"]
    list_filter = ["is_active", "default_currency"]
    search_fields = ["id", "name", "email"]
    readonly_fields = ["id", "balance", "ledger_total_display", "created_at", "updated_at"]
    ordering = ["-created_at"]

    @admin.display(description="Ledger total")
    def ledger_total_display(self, obj: Merchant) -> str:
        """
        Sum of the merchant's ledger entries, for checking against balance.

        This performs an aggregate query over the ledger.
        """
        total = Money(LedgerService.sum_entries(obj.id), settings.SETTLEMENT_CURRENCY)
        return str(total.quantized(settings.SETTLEMENT_DECIMAL_PLACES))


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Admin configuration for Order.

    Status changes are made by the confirmation engine and the expiration
    sweeper, not here.
    """

    list_display = ["id", "merchant", "total_amount", "currency", "status", "paid_at", "created_at"]
    list_filter = ["status", "currency", "created_at"]
    search_fields = ["id", "customer_email", "customer_name"]
    readonly_fields = ["id", "status", "version", "paid_at", "expired_at", "created_at", "updated_at"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def get_readonly_fields(self, request, obj=None):
        fields = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            fields += ["merchant", "total_amount", "currency"]
        return fields

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    The amount snapshot cannot be edited after creation.
    """

    list_display = [
        "id",
        "merchant",
        "order",
        "amount",
        "currency",
        "status",
        "amount_settlement_net",
        "provider_charge_id",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = ["id", "idempotency_key", "provider_charge_id", "gateway_preference_id", "customer_email"]
    readonly_fields = [
        "id",
        "status",
        "version",
        "idempotency_key",
        "gateway_preference_id",
        "gateway_redirect_url",
        "gateway_sandbox_redirect_url",
        "provider_charge_id",
        "status_detail",
        "failure_reason",
        "fx_snapshot",
        "amount_settlement_gross",
        "fee_settlement",
        "amount_settlement_net",
        "confirmed_at",
        "failed_at",
        "expired_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "merchant", "order", "product_reference", "customer_email")}),
        ("Amount", {"fields": ("amount", "currency", "expires_at")}),
        ("Status", {"fields": ("status", "version", "status_detail", "failure_reason")}),
        (
            "Gateway",
            {
                "fields": (
                    "idempotency_key",
                    "gateway_preference_id",
                    "gateway_redirect_url",
                    "gateway_sandbox_redirect_url",
                    "provider_charge_id",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Settlement",
            {"fields": ("fx_snapshot", "amount_settlement_gross", "fee_settlement", "amount_settlement_net")},
        ),
        ("Timestamps", {"fields": ("confirmed_at", "failed_at", "expired_at", "created_at", "updated_at")}),
    )

    def get_readonly_fields(self, request, obj=None):
        fields = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            fields += ["merchant", "order", "amount", "currency"]
        return fields

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(MerchantWebhook)
class MerchantWebhookAdmin(admin.ModelAdmin):
    list_display = ["id", "merchant", "url", "events", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["id", "url", "merchant__name"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "merchant", "entry_type", "amount", "balance_after", "currency", "payment", "created_at"]
    list_filter = ["entry_type", "currency", "created_at"]
    search_fields = ["id", "idempotency_key", "merchant__name"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(FXSnapshot)
class FXSnapshotAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "from_currency", "to_currency", "rate", "source", "captured_at"]
    list_filter = ["from_currency", "to_currency", "source"]


@admin.register(GatewayEvent)
class GatewayEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Gateway traffic and engine findings, kept for replay and manual review."""

    list_display = ["id", "source", "event_type", "provider_charge_id", "payment", "order", "created_at"]
    list_filter = ["source", "event_type", "created_at"]
    search_fields = ["id", "provider_charge_id", "event_type"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(WebhookDelivery)
class WebhookDeliveryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "id",
        "webhook",
        "event_type",
        "response_status",
        "attempt_count",
        "delivered_at",
        "next_retry_at",
        "created_at",
    ]
    list_filter = ["event_type", "response_status", "created_at"]
    search_fields = ["id", "event_id", "webhook__url"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
