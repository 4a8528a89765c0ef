"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment, PaymentSplit, Refund, WebhookEvent, OutboxEvent
- test_views.py: API endpoint tests
- test_tasks.py: Celery task tests
- test_signals.py: Order event receivers
- test_integration.py: End-to-end payment lifecycles

Usage:
    pytest payments/tests/
    pytest payments/tests/test_views.py
"""
