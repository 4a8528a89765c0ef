"""
Payment admin configuration.

Financial records (payments, splits, refunds) are read-only here: state
changes go through the service layer. Webhook and outbox events can be
queued for retry from their changelists.
"""

from django.contrib import admin

from payments.models import (
    MerchantFeeConfig,
    OutboxEvent,
    Payment,
    PaymentSplit,
    Refund,
    WebhookEvent,
)
from payments.state_machines import OutboxEventStatus, WebhookEventStatus

__all__ = [
    "MerchantFeeConfigAdmin",
    "OutboxEventAdmin",
    "PaymentAdmin",
    "RefundAdmin",
    "WebhookEventAdmin",
]


def format_minor(amount: int, currency: str) -> str:
    return f"{amount / 100:.2f} {currency}"


class ReadOnlyAdminMixin:
    """Disables add and delete; used for the audit trail."""

    def has_add_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class PaymentSplitInline(ReadOnlyAdminMixin, admin.TabularInline):
    """Inline display of merchant splits for a payment."""

    model = PaymentSplit
    extra = 0
    can_delete = False
    readonly_fields = [
        "merchant_id",
        "gross_amount",
        "platform_fee",
        "processing_fee",
        "net_amount",
        "status",
        "escrow_release_date",
    ]
    fields = readonly_fields


class RefundInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = Refund
    extra = 0
    can_delete = False
    readonly_fields = ["id", "amount", "status", "reason", "provider_refund_id", "processed_at"]
    fields = readonly_fields
    show_change_link = True


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for Payment.

    All amount and status fields are read-only; use the API or the
    orchestrator to move a payment through its lifecycle.
    """

    list_display = [
        "id",
        "order_id",
        "provider",
        "amount_display",
        "status",
        "created_at",
    ]
    list_filter = ["status", "provider", "currency", "created_at"]
    search_fields = ["id", "order_id", "provider_payment_id", "idempotency_key"]
    readonly_fields = [
        "id",
        "order_id",
        "provider",
        "provider_payment_id",
        "idempotency_key",
        "amount_minor",
        "currency",
        "authorized_amount",
        "captured_amount",
        "refunded_amount",
        "platform_fee",
        "status",
        "requires_action",
        "action_url",
        "error_message",
        "version",
        "authorized_at",
        "captured_at",
        "refunded_at",
        "failed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    exclude = ["client_secret"]
    inlines = [PaymentSplitInline, RefundInline]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Payment) -> str:
        return format_minor(obj.amount_minor, obj.currency)


@admin.register(Refund)
class RefundAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "payment", "amount_display", "status", "reason", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "payment__id", "provider_refund_id", "order_line_item_id"]
    readonly_fields = [
        "id",
        "payment",
        "order_line_item_id",
        "amount",
        "currency",
        "status",
        "reason",
        "provider_refund_id",
        "error_message",
        "created_by",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: Refund) -> str:
        return format_minor(obj.amount, obj.currency)


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Payload and event details are immutable; failed events can be queued
    for reprocessing.
    """

    list_display = ["id", "provider", "event_type", "status", "retry_count", "created_at"]
    list_filter = ["provider", "status", "event_type"]
    search_fields = ["id", "provider_event_id"]
    readonly_fields = [
        "id",
        "provider",
        "provider_event_id",
        "event_type",
        "payload",
        "status",
        "error_message",
        "retry_count",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    actions = ["reprocess_events"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.action(description="Reprocess selected failed events")
    def reprocess_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        failed = queryset.filter(status=WebhookEventStatus.FAILED)
        for webhook_event in failed:
            process_webhook_event.delay(str(webhook_event.id))
        self.message_user(request, f"Queued {failed.count()} event(s) for reprocessing.")


@admin.register(OutboxEvent)
class OutboxEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["id", "event_type", "aggregate_id", "status", "retry_count", "created_at"]
    list_filter = ["status", "event_type"]
    search_fields = ["id", "aggregate_id"]
    readonly_fields = [
        "id",
        "aggregate_id",
        "aggregate_type",
        "event_type",
        "payload",
        "status",
        "retry_count",
        "next_retry_at",
        "error_message",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    actions = ["requeue_dead_letters"]
    ordering = ["-created_at"]

    @admin.action(description="Requeue dead-lettered events")
    def requeue_dead_letters(self, request, queryset):
        updated = queryset.filter(status=OutboxEventStatus.FAILED).update(
            status=OutboxEventStatus.PENDING,
            retry_count=0,
            next_retry_at=None,
        )
        self.message_user(request, f"Requeued {updated} event(s).")


@admin.register(MerchantFeeConfig)
class MerchantFeeConfigAdmin(admin.ModelAdmin):
    list_display = ["merchant_id", "commission_rate", "updated_at"]
    search_fields = ["merchant_id"]
