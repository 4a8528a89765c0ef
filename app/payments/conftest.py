"""
Pytest fixtures for payment tests.

Shared by payments/tests, services/tests, webhooks/tests and
adapters/tests. Fixtures provide orders, a scriptable provider and a fully
wired orchestrator, so tests exercise the real ledger store and outbox
against the test database.

Usage:
    def test_capture(orchestrator, order):
        payment, _ = orchestrator.authorize(order.id)
        payment = orchestrator.capture(payment.id)
        assert payment.status == PaymentStatus.CAPTURED
"""

from unittest.mock import patch

import pytest
from rest_framework.test import APIClient

from payments.adapters import ProviderRegistry
from payments.services import LedgerStore, OutboxPublisher, PaymentOrchestrator
from payments.tests.factories import OrderFactory, OrderItemFactory, UserFactory
from payments.tests.fakes import FakeProvider
from payments.webhooks import WebhookReconciler


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def api_client(user):
    """API client authenticated as ``user``."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# =============================================================================
# Order Fixtures
# =============================================================================


@pytest.fixture
def order(db):
    """Single-merchant USD order: one physical item at 37.99."""
    order = OrderFactory(currency="USD", total_amount=3799)
    OrderItemFactory(order=order, unit_price=3799, quantity=1)
    return order


@pytest.fixture
def multi_merchant_order(db):
    """USD order of 100.00: merchant A physical 60.00, merchant B digital 40.00."""
    order = OrderFactory(currency="USD", total_amount=10000)
    OrderItemFactory(order=order, unit_price=3000, quantity=2, item_type="physical")
    OrderItemFactory(order=order, unit_price=4000, quantity=1, item_type="digital")
    return order


@pytest.fixture
def rub_order(db):
    order = OrderFactory(currency="RUB", total_amount=150000)
    OrderItemFactory(order=order, unit_price=150000)
    return order


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def fake_provider():
    """Scriptable provider registered as stripe."""
    return FakeProvider(name="stripe")


@pytest.fixture
def fake_yookassa():
    return FakeProvider(name="yookassa")


@pytest.fixture
def registry(fake_provider, fake_yookassa):
    """USD -> stripe fake, RUB -> yookassa fake."""
    return ProviderRegistry(
        {"stripe": fake_provider, "yookassa": fake_yookassa},
        currency_map={"RUB": "yookassa"},
        default_provider="stripe",
    )


@pytest.fixture
def orchestrator(db, registry):
    return PaymentOrchestrator(
        store=LedgerStore(),
        providers=registry,
        outbox=OutboxPublisher(),
    )


@pytest.fixture
def reconciler(orchestrator):
    return WebhookReconciler(orchestrator)


@pytest.fixture
def default_orchestrator(orchestrator):
    """Make PaymentOrchestrator.default() (views, tasks) return the fake-wired one."""
    with patch.object(PaymentOrchestrator, "default", return_value=orchestrator):
        yield orchestrator


@pytest.fixture
def authorized_payment(orchestrator, order):
    payment, _ = orchestrator.authorize(order.id)
    return payment


@pytest.fixture
def captured_payment(orchestrator, authorized_payment):
    return orchestrator.capture(authorized_payment.id)
