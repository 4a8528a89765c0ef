"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    pending → authorized → captured → partially_refunded → refunded
    captured → refunded (full refund in one step)
    pending/authorized/captured → failed (provider error)
    pending/authorized → cancelled (before capture)

PaymentSplit States (follow the payment):
    pending → authorized → captured → partially_refunded → refunded
    any pre-capture state → failed / cancelled

Refund States:
    pending → completed
    pending → failed

OutboxEvent States:
    pending → processing → processed
    processing → pending (retry with backoff) → ... → failed (dead letter)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: REFUNDED, FAILED, CANCELLED
    Transitions are one-directional; no terminal state moves back.
    """

    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    CAPTURED = "captured", "Captured"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class SplitStatus(models.TextChoices):
    """States for PaymentSplit, mirroring the owning payment."""

    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    CAPTURED = "captured", "Captured"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class RefundStatus(models.TextChoices):
    """
    States for the Refund model lifecycle.

    Terminal states: COMPLETED, FAILED, CANCELLED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    PROCESSED and IGNORED both count as handled: redeliveries are no-ops.
    IGNORED covers unmapped event types and unknown payment references.
    """

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"


class OutboxEventStatus(models.TextChoices):
    """
    Delivery status for OutboxEvent.

    FAILED is the dead-letter state reached after the retry budget is spent.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class ProviderName(models.TextChoices):
    """Payment gateways the core can route to."""

    STRIPE = "stripe", "Stripe"
    YOOKASSA = "yookassa", "YooKassa"
    NETWORK_INTL = "network_intl", "Network International"


# Split status each payment status implies. Keyed by every PaymentStatus
# member; a new payment status must be added here before it can be used.
SPLIT_STATUS_FOR_PAYMENT: dict[str, str] = {
    PaymentStatus.PENDING: SplitStatus.PENDING,
    PaymentStatus.AUTHORIZED: SplitStatus.AUTHORIZED,
    PaymentStatus.CAPTURED: SplitStatus.CAPTURED,
    PaymentStatus.PARTIALLY_REFUNDED: SplitStatus.PARTIALLY_REFUNDED,
    PaymentStatus.REFUNDED: SplitStatus.REFUNDED,
    PaymentStatus.FAILED: SplitStatus.FAILED,
    PaymentStatus.CANCELLED: SplitStatus.CANCELLED,
}

REFUNDABLE_STATUSES = frozenset(
    {PaymentStatus.CAPTURED, PaymentStatus.PARTIALLY_REFUNDED}
)
CANCELLABLE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.AUTHORIZED})
