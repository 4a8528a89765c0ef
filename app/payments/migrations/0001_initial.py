import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.db import migrations, models

PROVIDER_CHOICES = [
    ("stripe", "Stripe"),
    ("yookassa", "YooKassa"),
    ("network_intl", "Network International"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("authorized", "Authorized"),
    ("captured", "Captured"),
    ("partially_refunded", "Partially Refunded"),
    ("refunded", "Refunded"),
    ("failed", "Failed"),
    ("cancelled", "Cancelled"),
]

SPLIT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("authorized", "Authorized"),
    ("captured", "Captured"),
    ("partially_refunded", "Partially Refunded"),
    ("refunded", "Refunded"),
    ("failed", "Failed"),
    ("cancelled", "Cancelled"),
]


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4,
                editable=False,
                help_text="Unique identifier for this record",
                primary_key=True,
                serialize=False,
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                *timestamps(),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Flexible key-value metadata storage",
                    ),
                ),
                (
                    "order_id",
                    models.UUIDField(db_index=True, help_text="Order this payment settles"),
                ),
                (
                    "provider",
                    models.CharField(
                        choices=PROVIDER_CHOICES,
                        help_text="Gateway selected for this payment",
                        max_length=32,
                    ),
                ),
                (
                    "provider_payment_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider-assigned payment/intent reference",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Caller-supplied or derived key making authorize retry-safe",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "amount_minor",
                    models.PositiveBigIntegerField(
                        help_text="Requested amount in smallest currency unit"
                    ),
                ),
                (
                    "currency",
                    models.CharField(help_text="ISO 4217 currency code (upper-case)", max_length=3),
                ),
                (
                    "authorized_amount",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Amount reserved by the provider"
                    ),
                ),
                (
                    "captured_amount",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Amount actually transferred"
                    ),
                ),
                (
                    "refunded_amount",
                    models.PositiveBigIntegerField(default=0, help_text="Sum of completed refunds"),
                ),
                (
                    "platform_fee",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Total platform fee across all splits"
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=PAYMENT_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        help_text="Current payment state (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "requires_action",
                    models.BooleanField(
                        default=False,
                        help_text="Customer must complete an extra step (3DS, redirect)",
                    ),
                ),
                (
                    "action_url",
                    models.URLField(
                        blank=True,
                        help_text="Where to send the customer to complete the action",
                        max_length=1024,
                        null=True,
                    ),
                ),
                (
                    "client_secret",
                    models.CharField(
                        blank=True,
                        help_text="Client-side handle for completing the payment",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Last provider error, if any", null=True),
                ),
                (
                    "version",
                    models.PositiveIntegerField(default=1, help_text="Incremented on every save"),
                ),
                ("authorized_at", models.DateTimeField(blank=True, null=True)),
                ("captured_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["provider", "provider_payment_id"],
                        name="payment_provider_ref_idx",
                    ),
                    models.Index(
                        fields=["order_id", "created_at"],
                        name="payment_order_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_minor__gt", 0)),
                        name="payment_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("authorized_amount__lte", models.F("amount_minor"))),
                        name="payment_authorized_lte_amount",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("captured_amount__lte", models.F("authorized_amount"))),
                        name="payment_captured_lte_authorized",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("refunded_amount__lte", models.F("captured_amount"))),
                        name="payment_refunded_lte_captured",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentSplit",
            fields=[
                *timestamps(),
                (
                    "merchant_id",
                    models.UUIDField(db_index=True, help_text="Merchant receiving this split"),
                ),
                (
                    "gross_amount",
                    models.PositiveBigIntegerField(
                        help_text="Sum of the merchant's line item totals"
                    ),
                ),
                (
                    "platform_fee",
                    models.BigIntegerField(default=0, help_text="Marketplace commission"),
                ),
                (
                    "processing_fee",
                    models.BigIntegerField(
                        default=0,
                        help_text="Gateway processing fee attributed to this merchant",
                    ),
                ),
                (
                    "net_amount",
                    models.BigIntegerField(
                        help_text="Amount owed to the merchant (gross - fees - refunds)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(help_text="ISO 4217 currency code (upper-case)", max_length=3),
                ),
                (
                    "status",
                    models.CharField(
                        choices=SPLIT_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        help_text="Mirrors the payment's capture/refund lifecycle",
                        max_length=32,
                    ),
                ),
                (
                    "escrow_release_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="Earliest date the net amount may be paid out",
                        null=True,
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        help_text="Payment this split belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="splits",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Split",
                "verbose_name_plural": "Payment Splits",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["merchant_id", "status"],
                        name="split_merchant_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("payment", "merchant_id"),
                        name="unique_split_per_merchant",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Refund",
            fields=[
                *timestamps(),
                (
                    "order_line_item_id",
                    models.UUIDField(
                        blank=True,
                        db_index=True,
                        help_text="Line item this refund is for, if not order-wide",
                        null=True,
                    ),
                ),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Refund amount in smallest currency unit"
                    ),
                ),
                (
                    "currency",
                    models.CharField(help_text="ISO 4217 currency code (upper-case)", max_length=3),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current refund state (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "reason",
                    models.TextField(blank=True, default="", help_text="Why the refund was issued"),
                ),
                (
                    "provider_refund_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Provider-assigned refund reference",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True, help_text="Provider error if the refund failed", null=True
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Actor who requested the refund",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the provider confirmed or rejected the refund",
                        null=True,
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        help_text="Payment being refunded",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="refunds",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Refund",
                "verbose_name_plural": "Refunds",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["payment", "status"],
                        name="refund_payment_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="refund_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *timestamps(),
                (
                    "provider",
                    models.CharField(
                        choices=PROVIDER_CHOICES,
                        help_text="Provider that sent the event",
                        max_length=32,
                    ),
                ),
                (
                    "provider_event_id",
                    models.CharField(help_text="Provider's own event id", max_length=255),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Provider event type (e.g., payment_intent.succeeded)",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Raw webhook payload as received")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processed", "Processed"),
                            ("ignored", "Ignored"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Processing status",
                        max_length=20,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error from the last failed processing attempt",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of failed processing attempts"
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the event was applied to the ledger",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "retry_count"],
                        name="webhook_status_retry_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("provider", "provider_event_id"),
                        name="unique_webhook_event_per_provider",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OutboxEvent",
            fields=[
                *timestamps(),
                (
                    "aggregate_id",
                    models.CharField(
                        db_index=True,
                        help_text="Id of the entity the event is about",
                        max_length=64,
                    ),
                ),
                (
                    "aggregate_type",
                    models.CharField(help_text="Kind of entity (payment, refund)", max_length=50),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Domain event name (e.g., payment.captured)",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Event body delivered to subscribers")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        help_text="Delivery status",
                        max_length=20,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveIntegerField(default=0, help_text="Failed delivery attempts"),
                ),
                (
                    "next_retry_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Earliest time of the next delivery attempt",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True, help_text="Error from the last failed delivery", null=True
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the event was delivered", null=True
                    ),
                ),
            ],
            options={
                "verbose_name": "Outbox Event",
                "verbose_name_plural": "Outbox Events",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "next_retry_at"],
                        name="outbox_status_retry_idx",
                    ),
                    models.Index(
                        fields=["aggregate_type", "aggregate_id"],
                        name="outbox_aggregate_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MerchantFeeConfig",
            fields=[
                *timestamps(),
                (
                    "merchant_id",
                    models.UUIDField(help_text="Merchant the override applies to", unique=True),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Fraction of gross taken as platform fee (0.1200 = 12%)",
                        max_digits=5,
                    ),
                ),
            ],
            options={
                "verbose_name": "Merchant Fee Config",
                "verbose_name_plural": "Merchant Fee Configs",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("commission_rate__gte", Decimal("0")))
                        & models.Q(("commission_rate__lte", Decimal("1"))),
                        name="merchant_commission_rate_range",
                    ),
                ],
            },
        ),
    ]
