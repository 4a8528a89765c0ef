"""
Refund model for payment refund tracking.

One row per refund attempt, full or partial, order-wide or for a single
line item. Rows are append-only: a failed attempt stays FAILED and a retry
creates a new row.

Usage:
    from payments.models import Refund

    refund = Refund.objects.create(
        payment=payment,
        amount=1000,
        currency=payment.currency,
        reason="damaged",
    )
    refund.complete(provider_refund_id="re_123")
    refund.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import RefundStatus


class Refund(UUIDPrimaryKeyMixin, BaseModel):
    """
    A refund attempt against a payment.

    State Flow:
        PENDING -> COMPLETED
        PENDING -> FAILED

    Invariant:
        sum(amount of COMPLETED refunds) == payment.refunded_amount
    """

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="refunds",
        help_text="Payment being refunded",
    )

    order_line_item_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Line item this refund is for, if not order-wide",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Refund amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code (upper-case)",
    )

    status = FSMField(
        default=RefundStatus.PENDING,
        choices=RefundStatus.choices,
        db_index=True,
        help_text="Current refund state (managed by FSM)",
    )

    reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the refund was issued",
    )

    provider_refund_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        db_index=True,
        help_text="Provider-assigned refund reference",
    )

    error_message = models.TextField(
        blank=True,
        null=True,
        help_text="Provider error if the refund failed",
    )

    created_by = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Actor who requested the refund",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider confirmed or rejected the refund",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Refund"
        verbose_name_plural = "Refunds"
        indexes = [
            models.Index(fields=["payment", "status"], name="refund_payment_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="refund_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Refund({self.id}, {self.status}, {self.amount} {self.currency})"

    @transition(
        field=status,
        source=RefundStatus.PENDING,
        target=RefundStatus.COMPLETED,
    )
    def complete(self, provider_refund_id: str | None = None):
        """Transition: PENDING -> COMPLETED"""
        self.provider_refund_id = provider_refund_id
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=RefundStatus.PENDING,
        target=RefundStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """Transition: PENDING -> FAILED"""
        self.error_message = reason
        self.processed_at = timezone.now()

    @property
    def is_complete(self) -> bool:
        return self.status == RefundStatus.COMPLETED
