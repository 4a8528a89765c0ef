"""
Tests for payment models.

Tests cover:
- Payment state transitions (django-fsm)
- Amount bookkeeping and derived properties
- Version increment on save
- Refund, webhook event and outbox event helpers
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from payments.state_machines import (
    SPLIT_STATUS_FOR_PAYMENT,
    OutboxEventStatus,
    PaymentStatus,
    RefundStatus,
    SplitStatus,
    WebhookEventStatus,
)
from payments.tests.factories import (
    OutboxEventFactory,
    PaymentFactory,
    RefundFactory,
    WebhookEventFactory,
)


# =============================================================================
# Payment
# =============================================================================


@pytest.mark.django_db
class TestPaymentTransitions:
    def test_authorize_defaults_to_full_amount(self):
        payment = PaymentFactory()

        payment.authorize()

        assert payment.status == PaymentStatus.AUTHORIZED
        assert payment.authorized_amount == 3799
        assert payment.authorized_at is not None

    def test_capture(self):
        payment = PaymentFactory(authorized=True)

        payment.capture(2000)

        assert payment.status == PaymentStatus.CAPTURED
        assert payment.captured_amount == 2000

    def test_cannot_capture_pending(self):
        with pytest.raises(TransitionNotAllowed):
            PaymentFactory().capture(3799)

    def test_partial_then_full_refund(self):
        payment = PaymentFactory(captured=True)

        payment.apply_refund(1000)
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
        assert payment.refunded_at is None

        payment.apply_refund(2799)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_amount == 3799
        assert payment.refunded_at is not None

    def test_refund_from_authorized_not_allowed(self):
        with pytest.raises(TransitionNotAllowed):
            PaymentFactory(authorized=True).apply_refund(100)

    @pytest.mark.parametrize(
        "status",
        [PaymentStatus.REFUNDED, PaymentStatus.FAILED, PaymentStatus.CANCELLED],
    )
    def test_terminal_states_are_final(self, status):
        payment = PaymentFactory(status=status)

        for transition in (payment.authorize, payment.cancel, payment.fail):
            with pytest.raises(TransitionNotAllowed):
                transition()

    def test_fail_records_reason(self):
        payment = PaymentFactory(authorized=True)

        payment.fail("Card expired")

        assert payment.status == PaymentStatus.FAILED
        assert payment.error_message == "Card expired"
        assert payment.failed_at is not None

    def test_cancel_from_pending(self):
        payment = PaymentFactory()

        payment.cancel()

        assert payment.status == PaymentStatus.CANCELLED
        assert payment.cancelled_at is not None


@pytest.mark.django_db
class TestPaymentBookkeeping:
    def test_remaining_refundable(self):
        payment = PaymentFactory(captured=True, refunded_amount=1000, status=PaymentStatus.PARTIALLY_REFUNDED)

        assert payment.remaining_refundable == 2799
        assert payment.is_fully_refunded is False

    def test_split_status_follows_payment(self):
        payment = PaymentFactory(status=PaymentStatus.PARTIALLY_REFUNDED)

        assert payment.split_status == SplitStatus.PARTIALLY_REFUNDED

    def test_version_increments_on_update(self):
        payment = PaymentFactory()
        assert payment.version == 1

        payment.error_message = "first"
        payment.save()
        payment.error_message = "second"
        payment.save(update_fields=["error_message"])

        payment.refresh_from_db()
        assert payment.version == 3

    def test_captured_cannot_exceed_authorized(self):
        with pytest.raises(IntegrityError):
            PaymentFactory(authorized_amount=1000, captured_amount=2000)

    def test_idempotency_key_unique(self):
        PaymentFactory(idempotency_key="dup")

        with pytest.raises(IntegrityError):
            PaymentFactory(idempotency_key="dup")

    def test_metadata_helpers(self):
        payment = PaymentFactory()

        payment.set_meta("provider_status", "requires_capture")

        payment.refresh_from_db()
        assert payment.get_meta("provider_status") == "requires_capture"
        assert payment.get_meta("missing", "n/a") == "n/a"


# =============================================================================
# PaymentSplit
# =============================================================================


class TestSplitStatus:
    def test_every_split_status_mirrors_a_payment_status(self):
        assert set(SPLIT_STATUS_FOR_PAYMENT) == set(PaymentStatus.values)
        assert set(SPLIT_STATUS_FOR_PAYMENT.values()) == set(SplitStatus.values)


# =============================================================================
# Refund
# =============================================================================


@pytest.mark.django_db
class TestRefund:
    def test_complete(self):
        refund = RefundFactory()

        refund.complete("re_123")

        assert refund.status == RefundStatus.COMPLETED
        assert refund.provider_refund_id == "re_123"
        assert refund.is_complete
        assert refund.processed_at is not None

    def test_fail(self):
        refund = RefundFactory()

        refund.fail("Declined")

        assert refund.status == RefundStatus.FAILED
        assert refund.error_message == "Declined"

    def test_completed_refund_cannot_fail(self):
        refund = RefundFactory()
        refund.complete("re_123")

        with pytest.raises(TransitionNotAllowed):
            refund.fail("late")


# =============================================================================
# Webhook and Outbox Events
# =============================================================================


@pytest.mark.django_db
class TestWebhookEvent:
    def test_mark_failed_counts_attempts(self, settings):
        settings.WEBHOOK_MAX_RETRIES = 2
        event = WebhookEventFactory()

        event.mark_failed("boom")
        assert event.status == WebhookEventStatus.FAILED
        assert event.retry_count == 1
        assert event.can_retry is True

        event.mark_failed("boom again")
        assert event.can_retry is False

    def test_ignored_counts_as_processed(self):
        event = WebhookEventFactory()

        event.mark_ignored("Unhandled event type: x")

        assert event.is_processed is True
        assert event.processed_at is not None

    def test_unique_per_provider(self):
        WebhookEventFactory(provider="stripe", provider_event_id="evt_1")

        with pytest.raises(IntegrityError):
            WebhookEventFactory(provider="stripe", provider_event_id="evt_1")


@pytest.mark.django_db
class TestOutboxEvent:
    def test_schedule_retry(self):
        event = OutboxEventFactory(status=OutboxEventStatus.PROCESSING)
        before = timezone.now()

        event.schedule_retry("ConnectionError: refused", 30)

        assert event.status == OutboxEventStatus.PENDING
        assert event.retry_count == 1
        assert event.next_retry_at >= before + timedelta(seconds=30)

    def test_mark_dead(self):
        event = OutboxEventFactory(retry_count=4)

        event.mark_dead("gave up")

        assert event.status == OutboxEventStatus.FAILED
        assert event.retry_count == 5

    def test_mark_processed_clears_error(self):
        event = OutboxEventFactory(error_message="earlier failure")

        event.mark_processed()

        assert event.status == OutboxEventStatus.PROCESSED
        assert event.error_message is None
