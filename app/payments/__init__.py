"""
Payments app for marketplace payment orchestration.

This app handles:
- Per-merchant split calculation (platform fee, processing fee, net)
- Authorization, capture, refund and cancellation across gateways
- Webhook reconciliation against the local ledger
- Transactional outbox for payment domain events

Related apps:
    - orders: Order and OrderItem records read when authorizing

Usage:
    from payments.services import PaymentOrchestrator

    orchestrator = PaymentOrchestrator.default()
    payment, created = orchestrator.authorize(order_id)
    orchestrator.capture(payment.id)
"""
