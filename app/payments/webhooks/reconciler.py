"""
Webhook reconciler: applies provider notifications to the ledger.

Each gateway has one explicit dispatch table mapping its event types to a
ledger action. Events are recorded durably before processing, processed at
most once under a row lock, and marked FAILED (for the retry task) when
processing raises.

Processing steps:
1. Resolve the provider and verify the signature (fail closed)
2. Parse the body into a ProviderEvent and record the WebhookEvent row
3. Return early if the event was already handled
4. In one UnitOfWork: lock the event, apply the mapped action to the
   payment, enqueue the domain event, mark the event processed or ignored
5. On error: roll back, then persist FAILED with the error and re-raise

Usage:
    from payments.webhooks import WebhookReconciler

    reconciler = WebhookReconciler.default()
    webhook_event = reconciler.process_webhook("stripe", request.body, signature)
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING

from django_fsm import can_proceed

from core.services import BaseService

from payments.adapters.base import load_json_payload
from payments.exceptions import PaymentValidationError, WebhookSignatureError
from payments.services.outbox import (
    PAYMENT_AUTHORIZED,
    PAYMENT_CANCELLED,
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    PAYMENT_REFUNDED,
)
from payments.services.payment_orchestrator import PaymentOrchestrator
from payments.state_machines import PaymentStatus, ProviderName

if TYPE_CHECKING:
    from core.unit_of_work import UnitOfWork

    from payments.adapters import PaymentProvider, ProviderEvent
    from payments.models import Payment, WebhookEvent


class WebhookAction(str, Enum):
    """Ledger action a provider event maps to."""

    AUTHORIZE = "authorize"
    CAPTURE = "capture"
    FAIL = "fail"
    CANCEL = "cancel"
    REFUND = "refund"


# =============================================================================
# Dispatch Tables
# =============================================================================

STRIPE_EVENTS: dict[str, WebhookAction] = {
    "payment_intent.succeeded": WebhookAction.AUTHORIZE,
    "payment_intent.amount_capturable_updated": WebhookAction.AUTHORIZE,
    "payment_intent.payment_failed": WebhookAction.FAIL,
    "payment_intent.canceled": WebhookAction.CANCEL,
    "charge.captured": WebhookAction.CAPTURE,
    "charge.refunded": WebhookAction.REFUND,
}

YOOKASSA_EVENTS: dict[str, WebhookAction] = {
    "payment.waiting_for_capture": WebhookAction.AUTHORIZE,
    "payment.succeeded": WebhookAction.CAPTURE,
    "payment.canceled": WebhookAction.CANCEL,
    "refund.succeeded": WebhookAction.REFUND,
}

NETWORK_INTL_EVENTS: dict[str, WebhookAction] = {
    "AUTHORISED": WebhookAction.AUTHORIZE,
    "CAPTURED": WebhookAction.CAPTURE,
    "DECLINED": WebhookAction.FAIL,
    "payment.failed": WebhookAction.FAIL,
    "REFUNDED": WebhookAction.REFUND,
}

DISPATCH_TABLES: dict[str, dict[str, WebhookAction]] = {
    ProviderName.STRIPE: STRIPE_EVENTS,
    ProviderName.YOOKASSA: YOOKASSA_EVENTS,
    ProviderName.NETWORK_INTL: NETWORK_INTL_EVENTS,
}


class WebhookReconciler(BaseService):
    """
    Records and applies provider webhook events.

    Shares the orchestrator's store, registry and outbox, and books
    gateway-initiated refunds through PaymentOrchestrator.apply_refund.
    """

    def __init__(self, orchestrator: PaymentOrchestrator):
        self.orchestrator = orchestrator
        self.store = orchestrator.store
        self.providers = orchestrator.providers
        self.outbox = orchestrator.outbox
        self._actions = {
            WebhookAction.AUTHORIZE: self._authorize,
            WebhookAction.CAPTURE: self._capture,
            WebhookAction.FAIL: self._fail,
            WebhookAction.CANCEL: self._cancel,
            WebhookAction.REFUND: self._refund,
        }

    @classmethod
    def default(cls) -> WebhookReconciler:
        return cls(PaymentOrchestrator.default())

    # =========================================================================
    # Entry Points
    # =========================================================================

    def process_webhook(self, provider_name: str, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify, record and apply one webhook delivery.

        Raises:
            UnknownProviderError: No provider registered under provider_name
            WebhookSignatureError: Signature did not verify (nothing stored)
            PaymentValidationError: Body is not a valid event
            Exception: Whatever processing raised, after the event is
                marked FAILED
        """
        webhook_event, event = self.receive(provider_name, payload, signature)
        return self.process(webhook_event, event)

    def receive(
        self, provider_name: str, payload: bytes, signature: str
    ) -> tuple[WebhookEvent, ProviderEvent]:
        """Verify and durably record a delivery without applying it."""
        logger = self.get_logger()
        provider = self.providers.get(provider_name)

        if not provider.verify_signature(payload, signature):
            logger.warning(
                "Webhook signature verification failed",
                extra={"provider": provider_name},
            )
            raise WebhookSignatureError(
                "Invalid webhook signature",
                details={"provider": provider_name},
            )

        event = provider.parse_event(payload)
        if not event.id or not event.type:
            raise PaymentValidationError(
                "Webhook event is missing its id or type",
                error_code="INVALID_WEBHOOK_PAYLOAD",
                details={"provider": provider_name},
            )

        webhook_event, created = self.store.record_webhook_event(
            provider_name, event, load_json_payload(payload)
        )
        logger.info(
            "Webhook received" if created else "Webhook redelivered",
            extra={
                "provider": provider_name,
                "provider_event_id": event.id,
                "event_type": event.type,
                "webhook_event_id": str(webhook_event.id),
            },
        )
        return webhook_event, event

    def reprocess(self, webhook_event: WebhookEvent) -> WebhookEvent:
        """Re-run processing from the stored payload (retry task)."""
        return self.process(webhook_event)

    def process(self, webhook_event: WebhookEvent, event: ProviderEvent | None = None) -> WebhookEvent:
        """
        Apply a recorded event exactly once.

        Already-handled events are returned untouched.
        """
        logger = self.get_logger()
        if webhook_event.is_processed:
            logger.info(
                "Webhook already processed, skipping",
                extra={"webhook_event_id": str(webhook_event.id)},
            )
            return webhook_event

        provider = self.providers.get(webhook_event.provider)
        if event is None:
            event = self._parse_stored(provider, webhook_event)

        try:
            with self.atomic() as uow:
                locked = self.store.lock_webhook_event(uow, webhook_event.id)
                if locked.is_processed:
                    return locked
                self._apply(uow, locked, event)
                self.store.save_webhook_event(locked, uow)
        except Exception as e:
            failed = self.store.get_webhook_event(webhook_event.id)
            failed.mark_failed(f"{type(e).__name__}: {e}")
            self.store.save_webhook_event(failed)
            logger.error(
                "Webhook processing failed",
                extra={
                    "webhook_event_id": str(failed.id),
                    "provider": failed.provider,
                    "event_type": failed.event_type,
                    "retry_count": failed.retry_count,
                },
                exc_info=True,
            )
            raise

        logger.info(
            "Webhook processed",
            extra={
                "webhook_event_id": str(locked.id),
                "event_type": locked.event_type,
                "status": locked.status,
            },
        )
        return locked

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _apply(self, uow: UnitOfWork, webhook_event: WebhookEvent, event: ProviderEvent) -> None:
        logger = self.get_logger()
        log_context = {
            "provider": webhook_event.provider,
            "provider_event_id": webhook_event.provider_event_id,
            "event_type": event.type,
        }

        action = DISPATCH_TABLES.get(webhook_event.provider, {}).get(event.type)
        if action is None:
            logger.info("No handler for webhook event type", extra=log_context)
            webhook_event.mark_ignored(f"Unhandled event type: {event.type}")
            return

        payment = None
        if event.intent_id:
            payment = self.store.find_by_provider_reference(
                uow, webhook_event.provider, event.intent_id
            )
        if payment is None:
            logger.warning(
                "Webhook refers to unknown payment",
                extra={**log_context, "intent_id": event.intent_id},
            )
            webhook_event.mark_ignored(f"No payment for provider reference {event.intent_id}")
            return

        skipped = self._actions[action](uow, payment, event)
        if skipped:
            logger.info(
                "Webhook transition ignored",
                extra={
                    **log_context,
                    "payment_id": str(payment.id),
                    "status": payment.status,
                    "reason": skipped,
                },
            )
            webhook_event.mark_ignored(skipped)
        else:
            webhook_event.mark_processed()

    # =========================================================================
    # Actions
    #
    # Each returns None when applied, or the reason the event was skipped.
    # =========================================================================

    def _authorize(self, uow: UnitOfWork, payment: Payment, event: ProviderEvent) -> str | None:
        if not can_proceed(payment.authorize):
            return f"Cannot authorize from '{payment.status}'"
        payment.authorize(self._bounded(event.amount, payment.amount_minor))
        self._save_with_event(uow, payment, PAYMENT_AUTHORIZED, payment.authorized_amount)
        return None

    def _capture(self, uow: UnitOfWork, payment: Payment, event: ProviderEvent) -> str | None:
        if payment.status == PaymentStatus.PENDING:
            payment.authorize(self._bounded(event.amount, payment.amount_minor))
            self.outbox.add_payment_event(uow, PAYMENT_AUTHORIZED, payment, payment.authorized_amount)
        if not can_proceed(payment.capture):
            return f"Cannot capture from '{payment.status}'"
        payment.capture(self._bounded(event.amount, payment.authorized_amount))
        self._save_with_event(uow, payment, PAYMENT_CAPTURED, payment.captured_amount)
        return None

    def _fail(self, uow: UnitOfWork, payment: Payment, event: ProviderEvent) -> str | None:
        if not can_proceed(payment.fail):
            return f"Cannot fail from '{payment.status}'"
        payment.fail(event.failure_message or f"Provider reported {event.type}")
        self._save_with_event(uow, payment, PAYMENT_FAILED, payment.amount_minor)
        return None

    def _cancel(self, uow: UnitOfWork, payment: Payment, event: ProviderEvent) -> str | None:
        if not can_proceed(payment.cancel):
            return f"Cannot cancel from '{payment.status}'"
        payment.cancel()
        self._save_with_event(uow, payment, PAYMENT_CANCELLED, payment.amount_minor)
        return None

    def _refund(self, uow: UnitOfWork, payment: Payment, event: ProviderEvent) -> str | None:
        """
        Book the part of a gateway refund the ledger has not seen yet.

        refunded_amount on the event is cumulative; without it the event
        amount is the refund itself. The delta never exceeds what remains
        refundable.
        """
        if not can_proceed(payment.refund_partial):
            return f"Cannot refund from '{payment.status}'"
        if event.refund_id and self.store.refund_exists(payment, event.refund_id):
            return f"Refund {event.refund_id} already booked"

        if event.refunded_amount is not None:
            delta = min(event.refunded_amount, payment.captured_amount) - payment.refunded_amount
        else:
            delta = min(event.amount or 0, payment.remaining_refundable)
        if delta <= 0:
            return "No new refunded amount"

        refund = self.store.create_refund(
            uow,
            payment=payment,
            amount=delta,
            reason=f"Refunded at provider ({event.type})",
        )
        refund.complete(event.refund_id)
        self.store.save_refund(uow, refund)
        self.orchestrator.apply_refund(uow, payment, delta)
        self.outbox.add_payment_event(uow, PAYMENT_REFUNDED, payment, delta, refund=refund)
        return None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _save_with_event(self, uow: UnitOfWork, payment: Payment, event_type: str, amount: int) -> None:
        self.store.save_payment(uow, payment)
        self.store.sync_split_status(uow, payment)
        self.outbox.add_payment_event(uow, event_type, payment, amount)

    @staticmethod
    def _bounded(amount: int | None, ceiling: int) -> int:
        if not amount:
            return ceiling
        return min(amount, ceiling)

    @staticmethod
    def _parse_stored(provider: PaymentProvider, webhook_event: WebhookEvent) -> ProviderEvent:
        return provider.parse_event(json.dumps(webhook_event.payload).encode())
