"""
Payment models.

Usage:
    from payments.models import Payment, PaymentSplit, Refund, WebhookEvent
"""

from payments.models.fee_config import MerchantFeeConfig
from payments.models.outbox_event import OutboxEvent
from payments.models.payment import Payment, PaymentSplit
from payments.models.refund import Refund
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "MerchantFeeConfig",
    "OutboxEvent",
    "Payment",
    "PaymentSplit",
    "Refund",
    "WebhookEvent",
]
