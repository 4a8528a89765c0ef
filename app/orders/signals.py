"""
Signals emitted by the order side.

The payment app listens to these to drive capture and line-item refunds.
Senders must fire them after their own transaction commits.

Usage:
    from orders.signals import order_fulfilled

    transaction.on_commit(
        lambda: order_fulfilled.send(sender=Order, order_id=order.id)
    )
"""

from django.dispatch import Signal

# kwargs: order_id
order_fulfilled = Signal()

# kwargs: order_id, line_item_id, amount, reason
line_item_refund_requested = Signal()
