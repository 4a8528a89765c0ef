"""
OutboxEvent model for transactional domain event publishing.

Rows are written in the same transaction as the ledger mutation that
produced them, then drained at-least-once by the outbox dispatcher task.

Usage:
    from payments.services.outbox import OutboxPublisher

    OutboxPublisher().add_event(
        aggregate_id=payment.id,
        aggregate_type="payment",
        event_type="payment.captured",
        payload={...},
        uow=uow,
    )
"""

from __future__ import annotations

from datetime import timedelta

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import OutboxEventStatus


class OutboxEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Pending domain event awaiting delivery.

    State Flow:
        PENDING -> PROCESSING -> PROCESSED
        PROCESSING -> PENDING (retry scheduled at next_retry_at)
        PROCESSING -> FAILED (dead letter, retry budget exhausted)
    """

    aggregate_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Id of the entity the event is about",
    )

    aggregate_type = models.CharField(
        max_length=50,
        help_text="Kind of entity (payment, refund)",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Domain event name (e.g., payment.captured)",
    )

    payload = models.JSONField(
        help_text="Event body delivered to subscribers",
    )

    status = models.CharField(
        max_length=20,
        choices=OutboxEventStatus.choices,
        default=OutboxEventStatus.PENDING,
        help_text="Delivery status",
    )

    retry_count = models.PositiveIntegerField(
        default=0,
        help_text="Failed delivery attempts",
    )

    next_retry_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Earliest time of the next delivery attempt",
    )

    error_message = models.TextField(
        blank=True,
        null=True,
        help_text="Error from the last failed delivery",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was delivered",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Outbox Event"
        verbose_name_plural = "Outbox Events"
        indexes = [
            models.Index(fields=["status", "next_retry_at"], name="outbox_status_retry_idx"),
            models.Index(fields=["aggregate_type", "aggregate_id"], name="outbox_aggregate_idx"),
        ]

    def __str__(self) -> str:
        return f"OutboxEvent({self.event_type}, {self.aggregate_id}, {self.status})"

    def mark_processed(self) -> None:
        self.status = OutboxEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def schedule_retry(self, error_message: str, delay_seconds: float) -> None:
        self.status = OutboxEventStatus.PENDING
        self.retry_count += 1
        self.error_message = error_message
        self.next_retry_at = timezone.now() + timedelta(seconds=delay_seconds)

    def mark_dead(self, error_message: str) -> None:
        self.status = OutboxEventStatus.FAILED
        self.retry_count += 1
        self.error_message = error_message
