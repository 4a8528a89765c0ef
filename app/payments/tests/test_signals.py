"""
Tests for the order signal receivers.
"""

import uuid
from unittest.mock import patch

import pytest

from orders.models import Order
from orders.signals import line_item_refund_requested, order_fulfilled


@pytest.mark.django_db
class TestOrderFulfilled:
    @patch("payments.tasks.capture_order_payment.delay")
    def test_queues_capture_after_commit(self, mock_delay, django_capture_on_commit_callbacks):
        order_id = uuid.uuid4()

        with django_capture_on_commit_callbacks(execute=True):
            order_fulfilled.send(sender=Order, order_id=order_id)
            mock_delay.assert_not_called()

        mock_delay.assert_called_once_with(str(order_id))

    @patch("payments.tasks.capture_order_payment.delay")
    def test_not_queued_until_commit(self, mock_delay, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            order_fulfilled.send(sender=Order, order_id=uuid.uuid4())

        assert len(callbacks) == 1
        mock_delay.assert_not_called()


@pytest.mark.django_db
class TestLineItemRefundRequested:
    @patch("payments.tasks.refund_line_item.delay")
    def test_queues_refund(self, mock_delay, django_capture_on_commit_callbacks):
        order_id, line_item_id = uuid.uuid4(), uuid.uuid4()

        with django_capture_on_commit_callbacks(execute=True):
            line_item_refund_requested.send(
                sender=Order,
                order_id=order_id,
                line_item_id=line_item_id,
                amount=500,
                reason="wrong colour",
                actor_id=42,
            )

        mock_delay.assert_called_once_with(
            str(order_id),
            str(line_item_id),
            amount=500,
            reason="wrong colour",
            actor_id="42",
        )

    @patch("payments.tasks.refund_line_item.delay")
    def test_defaults(self, mock_delay, django_capture_on_commit_callbacks):
        order_id, line_item_id = uuid.uuid4(), uuid.uuid4()

        with django_capture_on_commit_callbacks(execute=True):
            line_item_refund_requested.send(sender=Order, order_id=order_id, line_item_id=line_item_id)

        mock_delay.assert_called_once_with(
            str(order_id), str(line_item_id), amount=None, reason="", actor_id=None
        )
