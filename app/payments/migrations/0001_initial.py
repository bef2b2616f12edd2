import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django_fsm
from django.db import migrations, models

import payments.models.merchant_webhook
import payments.models.payment


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Merchant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("name", models.CharField(help_text="Merchant display name", max_length=200)),
                ("email", models.EmailField(blank=True, help_text="Merchant contact email", max_length=254)),
                (
                    "fee_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Platform fee percentage applied to confirmed payments",
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                ("default_currency", models.CharField(choices=[("ARS", "Argentine Peso"), ("BRL", "Brazilian Real"), ("USD", "US Dollar")], default="ARS", help_text="Default local currency for new payments", max_length=3)),
                ("balance", models.DecimalField(decimal_places=6, default=Decimal("0"), help_text="Balance in the settlement currency, maintained by the ledger", max_digits=20)),
                ("is_active", models.BooleanField(default=True, help_text="Whether the merchant accepts payments")),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("fee_percentage__gte", 0), ("fee_percentage__lte", 100)),
                        name="merchant_fee_percentage_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FXSnapshot",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("from_currency", models.CharField(max_length=10)),
                ("to_currency", models.CharField(max_length=10)),
                ("rate", models.DecimalField(decimal_places=10, help_text="to_currency per unit of from_currency", max_digits=24)),
                ("rate_inverse", models.DecimalField(decimal_places=10, help_text="from_currency per unit of to_currency", max_digits=24)),
                ("source", models.CharField(help_text="Rate provider or policy that produced the rate", max_length=50)),
                ("captured_at", models.DateTimeField(help_text="When the rate was observed")),
            ],
            options={
                "ordering": ["-captured_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("rate__gt", 0)), name="fx_snapshot_rate_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("status", django_fsm.FSMField(choices=[("pending_payment", "Pending Payment"), ("paid", "Paid"), ("expired", "Expired")], default="pending_payment", help_text="Current order status", max_length=50, protected=True)),
                ("version", models.PositiveIntegerField(default=1, help_text="Incremented on every write, used for compare-and-set")),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("customer_phone", models.CharField(blank=True, max_length=50)),
                ("shipping_address", models.JSONField(blank=True, default=dict, help_text="Shipping address as entered at checkout")),
                ("total_amount", models.DecimalField(decimal_places=2, help_text="Order total in the local currency", max_digits=14)),
                ("currency", models.CharField(choices=[("ARS", "Argentine Peso"), ("BRL", "Brazilian Real"), ("USD", "US Dollar")], default="ARS", max_length=3)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                ("merchant", models.ForeignKey(help_text="Merchant selling the order", on_delete=django.db.models.deletion.PROTECT, related_name="orders", to="payments.merchant")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["merchant", "status"], name="order_merchant_status_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("total_amount__gt", 0)), name="order_total_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Arbitrary key-value context")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("product_reference", models.CharField(blank=True, help_text="Product or payment link this payment was created from", max_length=255)),
                ("status", django_fsm.FSMField(choices=[("created", "Created"), ("pending", "Pending"), ("confirmed", "Confirmed"), ("expired", "Expired"), ("failed", "Failed")], db_index=True, default="created", help_text="Current payment status", max_length=50, protected=True)),
                ("version", models.PositiveIntegerField(default=1, help_text="Incremented on every write, used for compare-and-set")),
                ("amount", models.DecimalField(decimal_places=2, help_text="Amount in the local currency, fixed at creation", max_digits=14)),
                ("currency", models.CharField(choices=[("ARS", "Argentine Peso"), ("BRL", "Brazilian Real"), ("USD", "US Dollar")], default="ARS", help_text="Local currency, fixed at creation", max_length=3)),
                ("idempotency_key", models.CharField(default=payments.models.payment.generate_idempotency_key, editable=False, help_text="Sent to the gateway so retried charges have one effect", max_length=64, unique=True)),
                ("gateway_preference_id", models.CharField(blank=True, help_text="Gateway checkout preference id, once issued", max_length=255, null=True)),
                ("gateway_redirect_url", models.URLField(blank=True, max_length=1000)),
                ("gateway_sandbox_redirect_url", models.URLField(blank=True, max_length=1000)),
                ("provider_charge_id", models.CharField(blank=True, db_index=True, help_text="Gateway charge id of the charge that settled this payment", max_length=255, null=True)),
                ("status_detail", models.CharField(blank=True, help_text="Gateway status detail code of the last applied charge", max_length=100)),
                ("failure_reason", models.CharField(blank=True, help_text="Human-readable reason the payment failed", max_length=255)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("amount_settlement_gross", models.DecimalField(blank=True, decimal_places=6, max_digits=20, null=True)),
                ("fee_settlement", models.DecimalField(blank=True, decimal_places=6, max_digits=20, null=True)),
                ("amount_settlement_net", models.DecimalField(blank=True, decimal_places=6, max_digits=20, null=True)),
                ("expires_at", models.DateTimeField(db_index=True, default=payments.models.payment.default_expires_at, help_text="After this moment the sweeper expires the payment")),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                ("fx_snapshot", models.OneToOneField(blank=True, help_text="Rate used to convert this payment", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payment", to="payments.fxsnapshot")),
                ("merchant", models.ForeignKey(help_text="Merchant receiving the funds", on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="payments.merchant")),
                ("order", models.ForeignKey(blank=True, help_text="Order settled by this payment (e-commerce flow only)", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="payments.order")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "expires_at"], name="payment_status_expires_idx"),
                    models.Index(fields=["merchant", "status"], name="payment_merchant_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "confirmed"), _negated=True),
                            models.Q(
                                ("confirmed_at__isnull", False),
                                ("amount_settlement_net__isnull", False),
                                ("fx_snapshot__isnull", False),
                            ),
                            _connector="OR",
                        ),
                        name="payment_confirmed_has_settlement",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("source", models.CharField(choices=[("callback", "Gateway Callback"), ("charge_fetch", "Charge Fetch"), ("direct_charge", "Direct Charge"), ("preference", "Preference"), ("engine", "Confirmation Engine")], help_text="Path that produced this event", max_length=30)),
                ("event_type", models.CharField(db_index=True, help_text="Event type, e.g. callback.payment or amount_mismatch", max_length=100)),
                ("provider_charge_id", models.CharField(blank=True, db_index=True, help_text="Gateway charge id referenced by the payload", max_length=255)),
                ("payload", models.JSONField(blank=True, default=dict, help_text="Payload exactly as received")),
                ("error_message", models.TextField(blank=True, help_text="Error observed while handling this payload")),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="gateway_events", to="payments.order")),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="gateway_events", to="payments.payment")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["source", "created_at"], name="gateway_event_source_idx")],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Arbitrary key-value context")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this entry was recorded")),
                ("entry_type", models.CharField(choices=[("credit_payment", "Payment Credit"), ("debit_fee", "Fee Debit"), ("debit_payout", "Payout Debit"), ("credit_refund", "Refund Credit"), ("debit_chargeback", "Chargeback Debit")], max_length=30)),
                ("amount", models.DecimalField(decimal_places=6, help_text="Signed amount: positive credits, negative debits", max_digits=20)),
                ("balance_after", models.DecimalField(decimal_places=6, help_text="Merchant balance after applying this entry", max_digits=20)),
                ("currency", models.CharField(max_length=10)),
                ("description", models.TextField(blank=True)),
                ("idempotency_key", models.CharField(help_text="Unique key to prevent duplicate entries", max_length=255, unique=True)),
                ("merchant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="payments.merchant")),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="payments.payment")),
            ],
            options={
                "verbose_name_plural": "ledger entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["merchant", "created_at"], name="ledger_merchant_created_idx"),
                    models.Index(fields=["entry_type"], name="ledger_entry_type_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount", 0), _negated=True), name="ledger_entry_amount_non_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MerchantWebhook",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("url", models.URLField(max_length=1000)),
                ("secret_key", models.CharField(default=payments.models.merchant_webhook.generate_webhook_secret, help_text="Shared secret for the signature header", max_length=100)),
                ("events", models.JSONField(blank=True, default=list, help_text="Subscribed event types")),
                ("description", models.CharField(blank=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("merchant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="webhooks", to="payments.merchant")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["merchant", "is_active"], name="webhook_merchant_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="WebhookDelivery",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="When this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When this record was last written")),
                ("event_id", models.UUIDField(help_text="Id of the event, also sent inside the payload")),
                ("event_type", models.CharField(max_length=100)),
                ("payload", models.JSONField(help_text="Event payload as sent (re-serialized identically on retry)")),
                ("response_status", models.PositiveIntegerField(blank=True, null=True)),
                ("response_body", models.TextField(blank=True, help_text="Response body, truncated")),
                ("error_message", models.TextField(blank=True, help_text="Transport error when no response was received")),
                ("attempt_count", models.PositiveIntegerField(default=0)),
                ("last_attempt_at", models.DateTimeField(blank=True, null=True)),
                ("next_retry_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("webhook", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="deliveries", to="payments.merchantwebhook")),
            ],
            options={
                "verbose_name_plural": "webhook deliveries",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["delivered_at", "next_retry_at"], name="delivery_retry_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("webhook", "event_id"), name="unique_delivery_per_webhook_event"),
                ],
            },
        ),
    ]
