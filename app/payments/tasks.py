"""
Celery tasks for payment processing.

This module provides async tasks for:
- Reprocessing failed webhook events
- Dispatching and cleaning up outbox events
- Capturing and refunding in response to order events

Usage:
    from payments.tasks import capture_order_payment

    # Capture once the order ships
    capture_order_payment.delay(str(order.id))

    # Periodic tasks (scheduled via celery-beat, seeded by migration 0002)
    from payments.tasks import dispatch_outbox_events
    dispatch_outbox_events.delay()
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.conf import settings

from payments.models import WebhookEvent
from payments.state_machines import REFUNDABLE_STATUSES, PaymentStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Webhook Tasks
# =============================================================================


@shared_task(acks_late=True)
def process_webhook_event(webhook_event_id: str) -> dict:
    """
    Reprocess one recorded webhook event from its stored payload.

    Not auto-retried: a failure is recorded on the event (retry_count + 1)
    and retry_failed_webhooks picks it up again on its next run.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status
    """
    from payments.webhooks import WebhookReconciler

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    webhook_event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event = WebhookReconciler.default().reprocess(webhook_event)
    return {"status": webhook_event.status, "webhook_event_id": str(webhook_event_id)}


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Finds failed webhooks that haven't exceeded WEBHOOK_MAX_RETRIES and
    re-queues them for processing.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:100]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "provider": webhook.provider,
                "retry_count": webhook.retry_count,
            },
        )

    if queued_count:
        logger.info(
            f"Queued {queued_count} failed webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


# =============================================================================
# Outbox Tasks
# =============================================================================


@shared_task(acks_late=True)
def dispatch_outbox_events(limit: int = 100) -> dict:
    """
    Periodic task publishing due outbox events to subscribers.

    Returns:
        Dict with processed / retried / dead-lettered counts
    """
    from payments.services import OutboxDispatcher

    stats = OutboxDispatcher().dispatch_batch(limit=limit)
    return {
        "processed": stats.processed,
        "retried": stats.retried,
        "dead_lettered": stats.dead_lettered,
    }


@shared_task
def cleanup_processed_outbox_events(days: int | None = None) -> dict:
    """Periodic task deleting delivered outbox events past retention."""
    from payments.services import OutboxDispatcher

    return {"deleted_count": OutboxDispatcher().cleanup_processed(days)}


# =============================================================================
# Order Event Tasks
# =============================================================================


@shared_task(acks_late=True)
def capture_order_payment(order_id: str) -> dict:
    """
    Capture the order's payment once the order is fulfilled.

    Skips (without error) when there is no payment or it is not AUTHORIZED.
    Provider failures propagate; the payment is already recorded as FAILED.
    """
    from payments.services import PaymentOrchestrator

    orchestrator = PaymentOrchestrator.default()
    payment = orchestrator.get_by_order(order_id)
    if payment is None or payment.status != PaymentStatus.AUTHORIZED:
        logger.info(
            "No authorized payment to capture for order",
            extra={
                "order_id": str(order_id),
                "status": payment.status if payment else None,
            },
        )
        return {"status": "skipped", "order_id": str(order_id)}

    payment = orchestrator.capture(payment.id)
    return {"status": payment.status, "payment_id": str(payment.id)}


@shared_task(acks_late=True)
def refund_line_item(
    order_id: str,
    line_item_id: str,
    amount: int | None = None,
    reason: str = "",
    actor_id: str | None = None,
) -> dict:
    """
    Refund one order line.

    amount defaults to the line total and is capped at what remains
    refundable on the payment.
    """
    from orders.models import OrderItem
    from payments.services import PaymentOrchestrator

    orchestrator = PaymentOrchestrator.default()
    payment = orchestrator.get_by_order(order_id)
    if payment is None or payment.status not in REFUNDABLE_STATUSES:
        logger.info(
            "No refundable payment for order",
            extra={
                "order_id": str(order_id),
                "line_item_id": str(line_item_id),
                "status": payment.status if payment else None,
            },
        )
        return {"status": "skipped", "order_id": str(order_id)}

    if amount is None:
        item = OrderItem.objects.get(pk=line_item_id, order_id=order_id)
        amount = item.total
    amount = min(amount, payment.remaining_refundable)
    if amount <= 0:
        return {"status": "skipped", "order_id": str(order_id)}

    payment, refund = orchestrator.refund(
        payment.id,
        amount,
        reason or "Line item refund",
        line_item_id=line_item_id,
        actor_id=actor_id,
    )
    return {
        "status": payment.status,
        "payment_id": str(payment.id),
        "refund_id": str(refund.id),
    }
