"""
Payment orchestrator service for coordinating payment operations.

This module provides the PaymentOrchestrator class which is the entry
point for the payment lifecycle of a marketplace order. It coordinates
the ledger store, the provider registry, the split calculator and the
outbox.

The orchestrator:
- Authorizes an order's total through the gateway selected by currency
- Captures, refunds and cancels under a row lock on the payment
- Keeps merchant splits in step with the payment status
- Enqueues a domain event with every state change, in the same transaction

Provider failures are committed before the ProviderError propagates, so the
ledger always shows what the gateway last told us.

Usage:
    from payments.services import PaymentOrchestrator

    orchestrator = PaymentOrchestrator.default()

    payment, created = orchestrator.authorize(order_id)
    payment = orchestrator.capture(payment.id)
    payment, refund = orchestrator.refund(payment.id, 1000, "damaged")
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from django_fsm import TransitionNotAllowed

from core.services import BaseService

from payments.adapters import (
    CreateIntentParams,
    CustomerInfo,
    IntentLineItem,
    IntentStatus,
    ProviderRegistry,
)
from payments.exceptions import (
    InvalidPaymentStateError,
    InvalidStateTransitionError,
    PaymentValidationError,
    ProviderError,
    RefundAmountExceededError,
)
from payments.services.ledger_store import LedgerStore
from payments.services.outbox import (
    PAYMENT_AUTHORIZED,
    PAYMENT_CANCELLED,
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    PAYMENT_REFUNDED,
    OutboxPublisher,
)
from payments.services.split_calculator import SplitCalculator, SplitLineItem
from payments.state_machines import (
    CANCELLABLE_STATUSES,
    REFUNDABLE_STATUSES,
    PaymentStatus,
)

if TYPE_CHECKING:
    from core.unit_of_work import UnitOfWork

    from payments.adapters import PaymentProvider, ProviderPaymentStatus
    from payments.models import Payment, Refund
    from payments.services.ledger_store import OrderSnapshot


def default_idempotency_key(order_id) -> str:
    """Key used when the caller supplies none: payment_<order>_<unix ms>."""
    return f"payment_{order_id}_{int(time.time() * 1000)}"


class PaymentOrchestrator(BaseService):
    """
    Central coordinator for payment operations.

    Collaborators are injected so tests can swap in fakes; default() wires
    the production ones.

    Args:
        store: Ledger persistence
        providers: Provider registry and currency selector
        outbox: Domain event publisher
        calculator: Fee and split calculator (defaults to one that reads
            per-merchant commission overrides through the store)
    """

    def __init__(
        self,
        store: LedgerStore,
        providers: ProviderRegistry,
        outbox: OutboxPublisher,
        calculator: SplitCalculator | None = None,
    ):
        self.store = store
        self.providers = providers
        self.outbox = outbox
        self.calculator = calculator or SplitCalculator(
            fee_override=store.merchant_commission_rate
        )

    @classmethod
    def default(cls) -> PaymentOrchestrator:
        return cls(
            store=LedgerStore(),
            providers=ProviderRegistry.default(),
            outbox=OutboxPublisher(),
        )

    # =========================================================================
    # Authorize
    # =========================================================================

    def authorize(
        self,
        order_id,
        idempotency_key: str | None = None,
        customer: CustomerInfo | None = None,
        return_url: str | None = None,
    ) -> tuple[Payment, bool]:
        """
        Reserve the order total with the gateway for its currency.

        Args:
            order_id: Order to pay for
            idempotency_key: Retry key; defaults to payment_<order>_<unix ms>
            customer: Buyer details forwarded to the gateway
            return_url: Redirect target for redirect-based gateways

        Returns:
            (payment, created). created is False when the key was seen before
            and the existing payment is returned untouched.

        Raises:
            OrderNotFoundError: Order missing or without line items
            PaymentValidationError: Order total mismatch, or a key reused for
                a different order
            ProviderError: Gateway rejected the intent (the PENDING payment
                stays committed)
        """
        logger = self.get_logger()
        order = self.store.get_order_snapshot(order_id)
        key = idempotency_key or default_idempotency_key(order.id)

        existing = self.store.find_by_idempotency_key(key)
        if existing is not None:
            self._check_key_owner(existing, order, key)
            logger.info(
                "Idempotent authorize returned existing payment",
                extra={"payment_id": str(existing.id), "idempotency_key": key},
            )
            return existing, False

        splits = self.calculator.calculate(
            SplitLineItem(
                merchant_id=line.merchant_id,
                unit_price=line.unit_price,
                quantity=line.quantity,
                item_type=line.item_type,
            )
            for line in order.lines
        )
        provider_name = self.providers.provider_name_for(order.currency)
        provider = self.providers.get(provider_name)

        failure: ProviderError | None = None
        with self.atomic() as uow:
            payment, created = self.store.create_payment_with_splits(
                uow,
                order=order,
                provider=provider_name,
                idempotency_key=key,
                splits=splits,
            )
            if not created:
                self._check_key_owner(payment, order, key)
                return payment, False

            try:
                intent = provider.create_intent(
                    CreateIntentParams(
                        amount=order.total_amount,
                        currency=order.currency,
                        order_id=order.id,
                        idempotency_key=key,
                        customer=customer,
                        merchant_ids=order.merchant_ids,
                        items=[
                            IntentLineItem(
                                name=line.name,
                                unit_price=line.unit_price,
                                quantity=line.quantity,
                                item_type=line.item_type,
                            )
                            for line in order.lines
                        ],
                        return_url=return_url,
                        metadata={"payment_id": str(payment.id)},
                    )
                )
            except ProviderError as e:
                payment.error_message = str(e)
                self.store.save_payment(uow, payment)
                failure = e
            else:
                payment.provider_payment_id = intent.id
                payment.requires_action = intent.requires_action
                payment.action_url = intent.action_url
                payment.client_secret = intent.client_handle

                if intent.status in (IntentStatus.AUTHORIZED, IntentStatus.SUCCEEDED):
                    self._transition(payment, "authorize", intent.amount or payment.amount_minor)
                    self.store.save_payment(uow, payment)
                    self.store.sync_split_status(uow, payment)
                    self.outbox.add_payment_event(
                        uow, PAYMENT_AUTHORIZED, payment, payment.authorized_amount
                    )
                elif intent.status == IntentStatus.FAILED:
                    self._transition(payment, "fail", "Provider declined the payment intent")
                    self.store.save_payment(uow, payment)
                    self.store.sync_split_status(uow, payment)
                    self.outbox.add_payment_event(uow, PAYMENT_FAILED, payment, payment.amount_minor)
                else:
                    self.store.save_payment(uow, payment)

        if failure is not None:
            logger.error(
                "Authorization failed at provider",
                extra={
                    "payment_id": str(payment.id),
                    "order_id": order.id,
                    "provider": provider_name,
                    "error": str(failure),
                },
            )
            raise failure.with_payment_status(payment.status)

        logger.info(
            "Payment created",
            extra={
                "payment_id": str(payment.id),
                "order_id": order.id,
                "provider": provider_name,
                "status": payment.status,
                "amount": payment.amount_minor,
                "currency": payment.currency,
            },
        )
        return payment, True

    # =========================================================================
    # Capture
    # =========================================================================

    def capture(self, payment_id, amount: int | None = None) -> Payment:
        """
        Capture an authorized payment.

        Args:
            payment_id: Payment to capture
            amount: Partial amount; defaults to the authorized amount

        Raises:
            PaymentNotFoundError: Unknown payment
            InvalidPaymentStateError: Payment is not AUTHORIZED
            PaymentValidationError: amount is not within (0, authorized]
            ProviderError: Gateway refused the capture (payment committed
                as FAILED, splits untouched)
        """
        logger = self.get_logger()
        failure: ProviderError | None = None

        with self.atomic() as uow:
            payment = self.store.lock_payment(uow, payment_id)
            self._require_status(payment, {PaymentStatus.AUTHORIZED}, "capture")

            ceiling = payment.authorized_amount or payment.amount_minor
            capture_amount = amount if amount is not None else ceiling
            if capture_amount <= 0 or capture_amount > ceiling:
                raise PaymentValidationError(
                    "Capture amount must be positive and not exceed the authorized amount",
                    error_code="INVALID_CAPTURE_AMOUNT",
                    details={"amount": capture_amount, "authorized_amount": ceiling},
                )

            provider = self._provider_for(payment)
            try:
                result = provider.capture(payment.provider_payment_id, capture_amount)
                if not result.success:
                    raise ProviderError(
                        result.error or "Capture was not completed by the provider",
                        provider=payment.provider,
                        provider_code=result.error_code,
                        details={"provider_status": result.status},
                    )
            except ProviderError as e:
                self._transition(payment, "fail", str(e))
                self.store.save_payment(uow, payment)
                self.outbox.add_payment_event(uow, PAYMENT_FAILED, payment, capture_amount)
                failure = e
            else:
                self._transition(payment, "capture", result.amount or capture_amount)
                self.store.save_payment(uow, payment)
                self.store.sync_split_status(uow, payment)
                self.outbox.add_payment_event(
                    uow, PAYMENT_CAPTURED, payment, payment.captured_amount
                )

        if failure is not None:
            logger.error(
                "Capture failed at provider",
                extra={"payment_id": str(payment.id), "error": str(failure)},
            )
            raise failure.with_payment_status(payment.status)

        logger.info(
            "Payment captured",
            extra={"payment_id": str(payment.id), "amount": payment.captured_amount},
        )
        return payment

    # =========================================================================
    # Refund
    # =========================================================================

    def refund(
        self,
        payment_id,
        amount: int,
        reason: str,
        line_item_id=None,
        actor_id=None,
    ) -> tuple[Payment, Refund]:
        """
        Refund part or all of a captured payment.

        Each split's net amount is reduced by its proportional share of the
        refund.

        Raises:
            ValidationError: reason is blank
            PaymentNotFoundError: Unknown payment
            InvalidPaymentStateError: Payment is not CAPTURED/PARTIALLY_REFUNDED
            PaymentValidationError: amount is not positive
            RefundAmountExceededError: amount exceeds captured minus refunded
            ProviderError: Gateway refused the refund (refund committed as
                FAILED, payment unchanged)
        """
        logger = self.get_logger()
        failure: ProviderError | None = None
        self.validate_required(reason=reason)

        with self.atomic() as uow:
            payment = self.store.lock_payment(uow, payment_id)
            self._require_status(payment, REFUNDABLE_STATUSES, "refund")

            if amount is None or amount <= 0:
                raise PaymentValidationError(
                    "Refund amount must be positive",
                    error_code="INVALID_REFUND_AMOUNT",
                    details={"amount": amount},
                )
            if amount > payment.remaining_refundable:
                raise RefundAmountExceededError(
                    f"Refund amount exceeds refundable balance of {payment.remaining_refundable}",
                    details={
                        "requested": amount,
                        "max_refundable": payment.remaining_refundable,
                    },
                )

            refund = self.store.create_refund(
                uow,
                payment=payment,
                amount=amount,
                reason=reason,
                line_item_id=line_item_id,
                actor_id=actor_id,
            )

            provider = self._provider_for(payment)
            try:
                result = provider.refund(payment.provider_payment_id, amount, reason)
                if not result.success:
                    raise ProviderError(
                        result.error or "Refund was not completed by the provider",
                        provider=payment.provider,
                        provider_code=result.error_code,
                        details={"provider_status": result.status},
                    )
            except ProviderError as e:
                refund.fail(str(e))
                self.store.save_refund(uow, refund)
                failure = e
            else:
                refund.complete(result.refund_id)
                self.store.save_refund(uow, refund)
                self.apply_refund(uow, payment, amount)
                self.outbox.add_payment_event(
                    uow, PAYMENT_REFUNDED, payment, amount, refund=refund, reason=refund.reason
                )

        if failure is not None:
            logger.error(
                "Refund failed at provider",
                extra={
                    "payment_id": str(payment.id),
                    "refund_id": str(refund.id),
                    "error": str(failure),
                },
            )
            raise failure.with_payment_status(payment.status)

        logger.info(
            "Payment refunded",
            extra={
                "payment_id": str(payment.id),
                "refund_id": str(refund.id),
                "amount": amount,
                "status": payment.status,
            },
        )
        return payment, refund

    def apply_refund(self, uow: UnitOfWork, payment: Payment, amount: int) -> None:
        """
        Book a completed refund against a locked payment and its splits.

        Shared with the webhook reconciler so gateway-initiated refunds use
        the same proportional split reduction.
        """
        self._transition(payment, "apply_refund", amount)
        self.store.save_payment(uow, payment)

        splits = self.store.splits_for(uow, payment)
        for split in splits:
            share = self.calculator.refund_split(
                net_amount=split.net_amount,
                platform_fee=split.platform_fee,
                processing_fee=split.processing_fee,
                refund_amount=amount,
                payment_amount=payment.amount_minor,
            )
            split.net_amount -= share.merchant_refund
            split.status = payment.split_status
        self.store.save_splits(uow, splits)

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel(self, payment_id) -> Payment:
        """
        Void a payment that has not been captured.

        Raises:
            PaymentNotFoundError: Unknown payment
            InvalidPaymentStateError: Payment is not PENDING/AUTHORIZED
            ProviderError: Gateway refused to void the intent (nothing changes)
        """
        with self.atomic() as uow:
            payment = self.store.lock_payment(uow, payment_id)
            self._require_status(payment, CANCELLABLE_STATUSES, "cancel")

            if payment.provider_payment_id:
                result = self._provider_for(payment).cancel(payment.provider_payment_id)
                if not result.success:
                    raise ProviderError(
                        result.error or "Cancellation was not completed by the provider",
                        provider=payment.provider,
                        details={"provider_status": result.status},
                    ).with_payment_status(payment.status)

            self._transition(payment, "cancel")
            self.store.save_payment(uow, payment)
            self.store.sync_split_status(uow, payment)
            self.outbox.add_payment_event(uow, PAYMENT_CANCELLED, payment, payment.amount_minor)

        self.get_logger().info("Payment cancelled", extra={"payment_id": str(payment.id)})
        return payment

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, payment_id) -> Payment:
        """Raises PaymentNotFoundError if the payment does not exist."""
        return self.store.get_payment(payment_id)

    def get_by_order(self, order_id) -> Payment | None:
        """Most recent payment for the order, or None."""
        return self.store.latest_payment_for_order(order_id)

    def sync_status(self, payment_id) -> ProviderPaymentStatus:
        """
        Ask the gateway for the payment's live status.

        Read-only: the ledger is reconciled by webhooks, not by this call.
        """
        payment = self.store.get_payment(payment_id)
        if not payment.provider_payment_id:
            raise InvalidPaymentStateError(
                "Payment has no provider reference yet",
                error_code="NO_PROVIDER_REFERENCE",
                details={"payment_id": str(payment.id), "current_status": payment.status},
            )
        return self._provider_for(payment).get_status(payment.provider_payment_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _provider_for(self, payment: Payment) -> PaymentProvider:
        return self.providers.get(payment.provider)

    @staticmethod
    def _require_status(payment: Payment, allowed, operation: str) -> None:
        if payment.status not in allowed:
            required = sorted(str(status) for status in allowed)
            raise InvalidPaymentStateError(
                f"Cannot {operation} payment in '{payment.status}' state",
                details={
                    "payment_id": str(payment.id),
                    "current_status": payment.status,
                    "required_status": required[0] if len(required) == 1 else required,
                },
            )

    @staticmethod
    def _transition(payment: Payment, name: str, *args) -> None:
        try:
            getattr(payment, name)(*args)
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot {name} payment from '{payment.status}' state",
                details={"current_state": payment.status, "transition": name},
            ) from e

    @staticmethod
    def _check_key_owner(payment: Payment, order: OrderSnapshot, key: str) -> None:
        if str(payment.order_id) != order.id:
            raise PaymentValidationError(
                "Idempotency key was already used for a different order",
                error_code="IDEMPOTENCY_KEY_REUSED",
                details={"idempotency_key": key, "order_id": order.id},
            )
