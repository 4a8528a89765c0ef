"""
WebhookEvent model for provider webhook tracking.

Stores every webhook event received from any provider for idempotent
processing and audit trails. The (provider, provider_event_id) unique
constraint makes concurrent duplicate deliveries safe: the losing insert
fetches the winner's row instead.

The raw provider payload lives only here; everything downstream works on
the typed ProviderEvent parsed from it.

Usage:
    from payments.models import WebhookEvent

    event = WebhookEvent.objects.create(
        provider="stripe",
        provider_event_id="evt_123",
        event_type="payment_intent.succeeded",
        payload=payload_dict,
    )
    event.mark_processed()
    event.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import ProviderName, WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Append-only audit and dedup record for provider webhooks.

    Processing Flow:
        1. Verify signature (rejected events are never stored)
        2. Insert/get WebhookEvent by (provider, provider_event_id)
        3. If already processed -> no-op
        4. Apply the ledger transition and mark PROCESSED / IGNORED
        5. On error mark FAILED; the retry task picks it up later
    """

    provider = models.CharField(
        max_length=32,
        choices=ProviderName.choices,
        help_text="Provider that sent the event",
    )

    provider_event_id = models.CharField(
        max_length=255,
        help_text="Provider's own event id",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Provider event type (e.g., payment_intent.succeeded)",
    )

    payload = models.JSONField(
        help_text="Raw webhook payload as received",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Processing status",
    )

    error_message = models.TextField(
        blank=True,
        null=True,
        help_text="Error from the last failed processing attempt",
    )

    retry_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of failed processing attempts",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was applied to the ledger",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "provider_event_id"],
                name="unique_webhook_event_per_provider",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider}:{self.provider_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        """True once the event has been handled (applied or ignored)."""
        return self.status in (WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED)

    @property
    def can_retry(self) -> bool:
        """Failed with attempts left."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < settings.WEBHOOK_MAX_RETRIES
        )

    # ==========================================================================
    # Helper Methods (caller saves)
    # ==========================================================================

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_ignored(self, reason: str) -> None:
        self.status = WebhookEventStatus.IGNORED
        self.processed_at = timezone.now()
        self.error_message = reason

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
        self.retry_count += 1
