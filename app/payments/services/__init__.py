"""
Payment services for coordinating payment operations.

This module provides:
- PaymentOrchestrator: Authorize, capture, refund and cancel payments
- SplitCalculator: Per-merchant fee and split computation
- LedgerStore: Persistence for payments, splits, refunds and webhook events
- OutboxPublisher / OutboxDispatcher: Transactional domain events

Usage:
    from payments.services import PaymentOrchestrator

    orchestrator = PaymentOrchestrator.default()
    payment, created = orchestrator.authorize(order_id)
"""

from payments.services.ledger_store import LedgerStore, OrderLine, OrderSnapshot
from payments.services.outbox import (
    DispatchStats,
    OutboxDispatcher,
    OutboxPublisher,
    backoff_delay,
)
from payments.services.payment_orchestrator import (
    PaymentOrchestrator,
    default_idempotency_key,
)
from payments.services.split_calculator import (
    MerchantSplit,
    RefundSplit,
    SplitCalculator,
    SplitLineItem,
)

__all__ = [
    "DispatchStats",
    "LedgerStore",
    "MerchantSplit",
    "OrderLine",
    "OrderSnapshot",
    "OutboxDispatcher",
    "OutboxPublisher",
    "PaymentOrchestrator",
    "RefundSplit",
    "SplitCalculator",
    "SplitLineItem",
    "backoff_delay",
    "default_idempotency_key",
]
