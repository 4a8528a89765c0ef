"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    CANCELLABLE_STATUSES,
    REFUNDABLE_STATUSES,
    SPLIT_STATUS_FOR_PAYMENT,
    OutboxEventStatus,
    PaymentStatus,
    ProviderName,
    RefundStatus,
    SplitStatus,
    WebhookEventStatus,
)

__all__ = [
    "CANCELLABLE_STATUSES",
    "REFUNDABLE_STATUSES",
    "SPLIT_STATUS_FOR_PAYMENT",
    "OutboxEventStatus",
    "PaymentStatus",
    "ProviderName",
    "RefundStatus",
    "SplitStatus",
    "WebhookEventStatus",
]
