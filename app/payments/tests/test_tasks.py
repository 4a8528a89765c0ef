"""
Tests for payment Celery tasks.

Tasks are called directly (synchronously); .delay is patched where a task
fans out to another.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from payments.models import OutboxEvent, Payment, WebhookEvent
from payments.state_machines import OutboxEventStatus, PaymentStatus, WebhookEventStatus
from payments.tasks import (
    capture_order_payment,
    cleanup_processed_outbox_events,
    dispatch_outbox_events,
    process_webhook_event,
    refund_line_item,
    retry_failed_webhooks,
)
from payments.tests.factories import OutboxEventFactory, WebhookEventFactory
from payments.tests.fakes import signed_body


@pytest.mark.django_db
class TestWebhookTasks:
    def test_process_unknown_event(self):
        result = process_webhook_event(str(uuid.uuid4()))

        assert result["status"] == "not_found"

    def test_process_already_processed(self):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        assert process_webhook_event(str(event.id))["status"] == "already_processed"

    def test_reprocess_failed_event(self, default_orchestrator, reconciler, authorized_payment):
        data = {"id": "evt_1", "type": "charge.captured", "intent_id": "fake_pi_1"}
        body, signature = signed_body(data)
        webhook_event, _ = reconciler.receive("stripe", body, signature)
        webhook_event.mark_failed("RuntimeError: db down")
        webhook_event.save()

        result = process_webhook_event(str(webhook_event.id))

        assert result["status"] == WebhookEventStatus.PROCESSED
        assert Payment.objects.get(pk=authorized_payment.pk).status == PaymentStatus.CAPTURED

    @patch("payments.tasks.process_webhook_event.delay")
    def test_retry_failed_webhooks_queues_retryable(self, mock_delay, settings):
        settings.WEBHOOK_MAX_RETRIES = 5
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=2)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=5)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(retryable.id))


@pytest.mark.django_db
class TestOutboxTasks:
    def test_dispatch(self):
        OutboxEventFactory.create_batch(2)

        result = dispatch_outbox_events()

        assert result == {"processed": 2, "retried": 0, "dead_lettered": 0}
        assert not OutboxEvent.objects.exclude(status=OutboxEventStatus.PROCESSED).exists()

    def test_cleanup(self):
        OutboxEventFactory(
            status=OutboxEventStatus.PROCESSED,
            processed_at=timezone.now() - timedelta(days=60),
        )

        assert cleanup_processed_outbox_events(30) == {"deleted_count": 1}


@pytest.mark.django_db
class TestOrderEventTasks:
    def test_capture_order_payment(self, default_orchestrator, authorized_payment, order):
        result = capture_order_payment(str(order.id))

        assert result["status"] == PaymentStatus.CAPTURED
        assert Payment.objects.get(pk=authorized_payment.pk).captured_amount == 3799

    def test_capture_skips_without_authorized_payment(self, default_orchestrator, captured_payment, order):
        assert capture_order_payment(str(order.id))["status"] == "skipped"

    def test_capture_skips_unknown_order(self, default_orchestrator):
        assert capture_order_payment(str(uuid.uuid4()))["status"] == "skipped"

    def test_refund_line_item_defaults_to_line_total(
        self, default_orchestrator, multi_merchant_order
    ):
        payment, _ = default_orchestrator.authorize(multi_merchant_order.id)
        default_orchestrator.capture(payment.id)
        digital = multi_merchant_order.items.get(item_type="digital")

        result = refund_line_item(str(multi_merchant_order.id), str(digital.id), reason="not delivered")

        assert result["status"] == PaymentStatus.PARTIALLY_REFUNDED
        payment.refresh_from_db()
        assert payment.refunded_amount == 4000
        event = OutboxEvent.objects.get(event_type="payment.refunded")
        assert event.payload["lineItemId"] == str(digital.id)

    def test_refund_line_item_capped_at_refundable(self, default_orchestrator, captured_payment, order):
        item = order.items.get()
        default_orchestrator.refund(captured_payment.id, 3000, "partial")

        refund_line_item(str(order.id), str(item.id), amount=3799)

        assert Payment.objects.get(pk=captured_payment.pk).status == PaymentStatus.REFUNDED

    def test_refund_line_item_skips_uncaptured(self, default_orchestrator, authorized_payment, order):
        item = order.items.get()

        assert refund_line_item(str(order.id), str(item.id))["status"] == "skipped"
