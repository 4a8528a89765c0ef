"""
Factory Boy factories for payment test data.

This module provides factories for creating test instances of order and
payment models. Factories generate realistic test data while allowing easy
customization.

Usage:
    from payments.tests.factories import (
        OrderFactory,
        OrderItemFactory,
        PaymentFactory,
        PaymentSplitFactory,
    )

    # Order with one physical line of 37.99
    order = OrderFactory(total_amount=3799)
    OrderItemFactory(order=order, unit_price=3799)

    # Payment in a specific state
    payment = PaymentFactory(captured=True)
"""

import uuid

import factory
from django.utils import timezone

from orders.models import ItemType, Order, OrderItem
from payments.models import (
    MerchantFeeConfig,
    OutboxEvent,
    Payment,
    PaymentSplit,
    Refund,
    WebhookEvent,
)
from payments.state_machines import (
    OutboxEventStatus,
    PaymentStatus,
    ProviderName,
    RefundStatus,
    SplitStatus,
    WebhookEventStatus,
)


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for API users (django.contrib.auth)."""

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


# =============================================================================
# Orders
# =============================================================================


class OrderFactory(factory.django.DjangoModelFactory):
    """
    Factory for Order.

    total_amount must match the items created for the order; the payment
    core rejects orders whose total differs from their lines.
    """

    class Meta:
        model = Order

    customer_id = factory.LazyFunction(uuid.uuid4)
    currency = "USD"
    total_amount = 3799


class OrderItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory)
    merchant_id = factory.LazyFunction(uuid.uuid4)
    product_name = factory.Sequence(lambda n: f"Product {n}")
    unit_price = 3799
    quantity = 1
    item_type = ItemType.PHYSICAL


# =============================================================================
# Payments
# =============================================================================


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for Payment.

    Traits:
        authorized: AUTHORIZED for the full amount
        captured: CAPTURED for the full amount
    """

    class Meta:
        model = Payment

    order_id = factory.LazyFunction(uuid.uuid4)
    provider = ProviderName.STRIPE
    provider_payment_id = factory.Sequence(lambda n: f"pi_test_{n}")
    idempotency_key = factory.Sequence(lambda n: f"payment_test_{n}")
    amount_minor = 3799
    currency = "USD"
    status = PaymentStatus.PENDING

    class Params:
        authorized = factory.Trait(
            status=PaymentStatus.AUTHORIZED,
            authorized_amount=factory.SelfAttribute("amount_minor"),
            authorized_at=factory.LazyFunction(timezone.now),
        )
        captured = factory.Trait(
            status=PaymentStatus.CAPTURED,
            authorized_amount=factory.SelfAttribute("amount_minor"),
            captured_amount=factory.SelfAttribute("amount_minor"),
            authorized_at=factory.LazyFunction(timezone.now),
            captured_at=factory.LazyFunction(timezone.now),
        )


class PaymentSplitFactory(factory.django.DjangoModelFactory):
    """Split of a 37.99 physical line: 5.70 platform fee, 1.40 processing."""

    class Meta:
        model = PaymentSplit

    payment = factory.SubFactory(PaymentFactory)
    merchant_id = factory.LazyFunction(uuid.uuid4)
    gross_amount = 3799
    platform_fee = 570
    processing_fee = 140
    net_amount = 3089
    currency = factory.SelfAttribute("payment.currency")
    status = SplitStatus.PENDING


class RefundFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Refund

    payment = factory.SubFactory(PaymentFactory, captured=True)
    amount = 1000
    currency = factory.SelfAttribute("payment.currency")
    reason = "damaged"
    status = RefundStatus.PENDING


class WebhookEventFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = WebhookEvent

    provider = ProviderName.STRIPE
    provider_event_id = factory.Sequence(lambda n: f"evt_test_{n}")
    event_type = "payment_intent.succeeded"
    payload = factory.LazyAttribute(
        lambda o: {"id": o.provider_event_id, "type": o.event_type}
    )
    status = WebhookEventStatus.PENDING


class OutboxEventFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OutboxEvent

    aggregate_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    aggregate_type = "payment"
    event_type = "payment.captured"
    payload = factory.LazyAttribute(lambda o: {"paymentId": o.aggregate_id, "amount": 3799})
    status = OutboxEventStatus.PENDING


class MerchantFeeConfigFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MerchantFeeConfig

    merchant_id = factory.LazyFunction(uuid.uuid4)
    commission_rate = "0.1200"
