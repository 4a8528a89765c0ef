"""
Django signals for payments app.

This module defines:
- outbox_event_published: sent by the outbox dispatcher for every
  delivered domain event (at-least-once; receivers must be idempotent)
- Receivers for order signals that queue capture and line-item refund tasks

Related files:
    - services/outbox.py: OutboxDispatcher sends outbox_event_published
    - orders/signals.py: order_fulfilled, line_item_refund_requested
    - apps.py: Signal registration

Usage:
    from django.dispatch import receiver
    from payments.signals import outbox_event_published

    @receiver(outbox_event_published)
    def on_payment_event(sender, event_type, payload, event_id, **kwargs):
        if event_type == "payment.captured":
            ...
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.dispatch import Signal, receiver

from orders.signals import line_item_refund_requested, order_fulfilled

logger = logging.getLogger(__name__)

# kwargs: event_type, payload, event_id
outbox_event_published = Signal()


@receiver(order_fulfilled)
def on_order_fulfilled(sender, order_id, **kwargs):
    """Queue capture of the order's payment after the sender commits."""
    from payments.tasks import capture_order_payment

    logger.info("Order fulfilled, queueing capture", extra={"order_id": str(order_id)})
    transaction.on_commit(lambda: capture_order_payment.delay(str(order_id)))


@receiver(line_item_refund_requested)
def on_line_item_refund_requested(
    sender, order_id, line_item_id, amount=None, reason="", actor_id=None, **kwargs
):
    """Queue a refund of one order line after the sender commits."""
    from payments.tasks import refund_line_item

    logger.info(
        "Line item refund requested",
        extra={"order_id": str(order_id), "line_item_id": str(line_item_id)},
    )
    transaction.on_commit(
        lambda: refund_line_item.delay(
            str(order_id),
            str(line_item_id),
            amount=amount,
            reason=reason,
            actor_id=str(actor_id) if actor_id else None,
        )
    )
