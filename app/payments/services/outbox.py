"""
Transactional outbox: reliable enqueue and at-least-once dispatch of
domain events.

OutboxPublisher writes events inside the caller's UnitOfWork, so an event
exists if and only if the ledger mutation that produced it committed.

OutboxDispatcher drains pending rows from a Celery task and hands each one
to subscribers via the ``outbox_event_published`` signal. A failed
delivery is retried with exponential backoff and jitter, and moves to the
FAILED (dead letter) state once OUTBOX_MAX_RETRIES is spent.

Usage:
    from payments.services.outbox import OutboxPublisher

    with UnitOfWork() as uow:
        ...
        OutboxPublisher().add_event(
            aggregate_id=payment.id,
            aggregate_type="payment",
            event_type="payment.captured",
            payload={"paymentId": str(payment.id), ...},
            uow=uow,
        )
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from core.unit_of_work import UnitOfWork

from payments.models import OutboxEvent
from payments.signals import outbox_event_published
from payments.state_machines import OutboxEventStatus

if TYPE_CHECKING:
    from payments.models import Payment, Refund

logger = logging.getLogger(__name__)


# =============================================================================
# Event Types
# =============================================================================

PAYMENT_AUTHORIZED = "payment.authorized"
PAYMENT_CAPTURED = "payment.captured"
PAYMENT_REFUNDED = "payment.refunded"
PAYMENT_CANCELLED = "payment.cancelled"
PAYMENT_FAILED = "payment.failed"

# PROCESSING rows older than this are assumed abandoned by a dead worker
STALE_PROCESSING_AFTER = timedelta(minutes=5)


def backoff_delay(
    attempt: int,
    base: float = 1.0,
    max_delay: float = 300.0,
    jitter: float = 0.2,
) -> float:
    """
    Exponential backoff with symmetric jitter.

    Attempt 0: 0.8 - 1.2s, attempt 3: 6.4 - 9.6s, capped at 300s +/- 20%.
    """
    delay = min(base * (2**attempt), max_delay)
    return delay * random.uniform(1 - jitter, 1 + jitter)


# =============================================================================
# Publisher
# =============================================================================


class OutboxPublisher:
    """Writes domain events in the caller's transaction."""

    def add_event(
        self,
        aggregate_id: Any,
        aggregate_type: str,
        event_type: str,
        payload: dict[str, Any],
        uow: UnitOfWork,
    ) -> OutboxEvent:
        """
        Enqueue one event.

        Raises:
            RuntimeError: If uow is not active (the event would not share
                the mutation's transaction)
        """
        uow.ensure_active()
        event = OutboxEvent.objects.using(uow.using).create(
            aggregate_id=str(aggregate_id),
            aggregate_type=aggregate_type,
            event_type=event_type,
            payload=payload,
        )
        logger.debug(
            "Outbox event enqueued",
            extra={"event_type": event_type, "aggregate_id": str(aggregate_id)},
        )
        return event

    def add_payment_event(
        self,
        uow: UnitOfWork,
        event_type: str,
        payment: Payment,
        amount: int,
        refund: Refund | None = None,
        **extra: Any,
    ) -> OutboxEvent:
        """Enqueue a payment.* event with the standard payment payload."""
        payload: dict[str, Any] = {
            "paymentId": str(payment.id),
            "orderId": str(payment.order_id),
            "amount": amount,
            "currency": payment.currency,
            "provider": payment.provider,
            "status": payment.status,
        }
        if refund is not None:
            payload["refundId"] = str(refund.id)
            if refund.order_line_item_id:
                payload["lineItemId"] = str(refund.order_line_item_id)
        payload.update(extra)
        return self.add_event(payment.id, "payment", event_type, payload, uow)


# =============================================================================
# Dispatcher
# =============================================================================


@dataclass
class DispatchStats:
    processed: int = 0
    retried: int = 0
    dead_lettered: int = 0


class OutboxDispatcher:
    """Drains due outbox rows and publishes them to subscribers."""

    def __init__(self, max_retries: int | None = None):
        self.max_retries = (
            max_retries if max_retries is not None else settings.OUTBOX_MAX_RETRIES
        )

    def claim_batch(self, limit: int) -> list[OutboxEvent]:
        """
        Move up to ``limit`` due rows to PROCESSING and return them.

        SKIP LOCKED lets several dispatchers run side by side without
        claiming the same row.
        """
        now = timezone.now()
        due = Q(status=OutboxEventStatus.PENDING) & (
            Q(next_retry_at__isnull=True) | Q(next_retry_at__lte=now)
        )
        stale = Q(status=OutboxEventStatus.PROCESSING, updated_at__lt=now - STALE_PROCESSING_AFTER)

        with UnitOfWork():
            events = list(
                OutboxEvent.objects.select_for_update(skip_locked=True)
                .filter(due | stale)
                .order_by("created_at")[:limit]
            )
            ids = [event.id for event in events]
            OutboxEvent.objects.filter(id__in=ids).update(
                status=OutboxEventStatus.PROCESSING, updated_at=now
            )
        for event in events:
            event.status = OutboxEventStatus.PROCESSING
        return events

    def dispatch_batch(self, limit: int = 100) -> DispatchStats:
        stats = DispatchStats()
        for event in self.claim_batch(limit):
            self.dispatch_one(event, stats)
        if stats.processed or stats.retried or stats.dead_lettered:
            logger.info(
                "Outbox batch dispatched",
                extra={
                    "processed": stats.processed,
                    "retried": stats.retried,
                    "dead_lettered": stats.dead_lettered,
                },
            )
        return stats

    def dispatch_one(self, event: OutboxEvent, stats: DispatchStats) -> None:
        log_context = {
            "outbox_event_id": str(event.id),
            "event_type": event.event_type,
            "aggregate_id": event.aggregate_id,
            "retry_count": event.retry_count,
        }
        try:
            outbox_event_published.send(
                sender=OutboxEvent,
                event_type=event.event_type,
                payload=event.payload,
                event_id=str(event.id),
            )
        except Exception as e:
            # Subscribers are arbitrary code; any failure becomes a retry.
            error = f"{type(e).__name__}: {e}"
            if event.retry_count + 1 >= self.max_retries:
                event.mark_dead(error)
                stats.dead_lettered += 1
                logger.error(
                    "Outbox event moved to dead letter",
                    extra={**log_context, "error": error},
                )
            else:
                delay = backoff_delay(event.retry_count)
                event.schedule_retry(error, delay)
                stats.retried += 1
                logger.warning(
                    "Outbox event delivery failed, retry scheduled",
                    extra={**log_context, "error": error, "delay_seconds": delay},
                )
        else:
            event.mark_processed()
            stats.processed += 1

        event.save(
            update_fields=[
                "status",
                "retry_count",
                "error_message",
                "next_retry_at",
                "processed_at",
                "updated_at",
            ]
        )

    def cleanup_processed(self, retention_days: int | None = None) -> int:
        """Delete delivered events older than the retention window."""
        days = retention_days if retention_days is not None else settings.OUTBOX_RETENTION_DAYS
        cutoff = timezone.now() - timedelta(days=days)
        deleted, _ = OutboxEvent.objects.filter(
            status=OutboxEventStatus.PROCESSED,
            processed_at__lt=cutoff,
        ).delete()
        if deleted:
            logger.info(
                "Cleaned up processed outbox events",
                extra={"deleted": deleted, "retention_days": days},
            )
        return deleted
