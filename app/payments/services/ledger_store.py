"""
Ledger store: persistence for payments, splits, refunds and webhook events.

Every read and write the payment core performs goes through this class.
Writes take the caller's UnitOfWork and target its database alias, so a
service operation's ledger rows and outbox rows commit together.

Row locking:
    lock_payment() and lock_webhook_event() use SELECT ... FOR UPDATE and
    must be called inside the UnitOfWork whose lifetime the lock spans.

Usage:
    from core.unit_of_work import UnitOfWork
    from payments.services.ledger_store import LedgerStore

    store = LedgerStore()
    with UnitOfWork() as uow:
        payment = store.lock_payment(uow, payment_id)
        payment.capture(payment.authorized_amount)
        store.save_payment(uow, payment)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError

from core.unit_of_work import UnitOfWork

from payments.exceptions import (
    OrderNotFoundError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import (
    MerchantFeeConfig,
    Payment,
    PaymentSplit,
    Refund,
    WebhookEvent,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from payments.adapters.base import ProviderEvent
    from payments.services.split_calculator import MerchantSplit

logger = logging.getLogger(__name__)


# =============================================================================
# Order Snapshot (read-only view of the order collaborator)
# =============================================================================


@dataclass(frozen=True)
class OrderLine:
    id: str
    merchant_id: str
    name: str
    unit_price: int
    quantity: int
    item_type: str

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderSnapshot:
    id: str
    customer_id: str
    currency: str
    total_amount: int
    lines: tuple[OrderLine, ...]

    @property
    def merchant_ids(self) -> list[str]:
        return list(dict.fromkeys(line.merchant_id for line in self.lines))


def _as_uuid(value, error_cls, label: str) -> uuid.UUID:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise error_cls(
            f"{label} {value} not found",
            details={f"{label.lower()}_id": str(value)},
        ) from None


# =============================================================================
# Store
# =============================================================================


class LedgerStore:
    """
    Transactional access to ledger records.

    Read methods may be called outside a UnitOfWork; write and lock methods
    require an active one.
    """

    # -------------------------------------------------------------------------
    # Order collaborator
    # -------------------------------------------------------------------------

    def get_order_snapshot(self, order_id) -> OrderSnapshot:
        """
        Load an order and its line items.

        Raises:
            OrderNotFoundError: Missing order, or an order with no items
            PaymentValidationError: Order total does not match its items
        """
        from orders.models import Order

        pk = _as_uuid(order_id, OrderNotFoundError, "Order")
        order = Order.objects.prefetch_related("items").filter(pk=pk).first()
        if order is None:
            raise OrderNotFoundError(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )

        lines = tuple(
            OrderLine(
                id=str(item.id),
                merchant_id=str(item.merchant_id),
                name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                item_type=item.item_type,
            )
            for item in order.items.all()
        )
        if not lines:
            raise OrderNotFoundError(
                f"Order {order_id} has no line items",
                error_code="ORDER_HAS_NO_ITEMS",
                details={"order_id": str(order_id)},
            )

        items_total = sum(line.total for line in lines)
        if items_total != order.total_amount:
            raise PaymentValidationError(
                "Order total does not match its line items",
                error_code="ORDER_TOTAL_MISMATCH",
                details={
                    "order_id": str(order_id),
                    "total_amount": order.total_amount,
                    "items_total": items_total,
                },
            )

        return OrderSnapshot(
            id=str(order.id),
            customer_id=str(order.customer_id),
            currency=order.currency.upper(),
            total_amount=order.total_amount,
            lines=lines,
        )

    def merchant_commission_rate(self, merchant_id: str) -> Decimal | None:
        """Per-merchant commission override, or None."""
        return (
            MerchantFeeConfig.objects.filter(merchant_id=merchant_id)
            .values_list("commission_rate", flat=True)
            .first()
        )

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def get_payment(self, payment_id) -> Payment:
        pk = _as_uuid(payment_id, PaymentNotFoundError, "Payment")
        payment = Payment.objects.filter(pk=pk).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        return payment

    def find_by_idempotency_key(self, idempotency_key: str) -> Payment | None:
        return Payment.objects.filter(idempotency_key=idempotency_key).first()

    def latest_payment_for_order(self, order_id) -> Payment | None:
        try:
            pk = _as_uuid(order_id, OrderNotFoundError, "Order")
        except OrderNotFoundError:
            return None
        return Payment.objects.filter(order_id=pk).order_by("-created_at").first()

    def find_by_provider_reference(self, uow: UnitOfWork, provider: str, reference: str) -> Payment | None:
        """Locate and lock the payment a provider event refers to."""
        uow.ensure_active()
        return (
            Payment.objects.using(uow.using)
            .select_for_update()
            .filter(provider=provider, provider_payment_id=reference)
            .first()
        )

    def lock_payment(self, uow: UnitOfWork, payment_id) -> Payment:
        """
        Fetch a payment with an exclusive row lock held until uow ends.

        Raises:
            PaymentNotFoundError: If no such payment exists
        """
        uow.ensure_active()
        pk = _as_uuid(payment_id, PaymentNotFoundError, "Payment")
        payment = Payment.objects.using(uow.using).select_for_update().filter(pk=pk).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        return payment

    def create_payment_with_splits(
        self,
        uow: UnitOfWork,
        *,
        order: OrderSnapshot,
        provider: str,
        idempotency_key: str,
        splits: Iterable[MerchantSplit],
    ) -> tuple[Payment, bool]:
        """
        Insert a PENDING payment and its splits.

        Returns:
            (payment, created). created is False when a concurrent request
            won the idempotency-key race; the winner's row is returned.
        """
        uow.ensure_active()
        splits = list(splits)
        try:
            with uow.savepoint():
                payment = Payment.objects.using(uow.using).create(
                    order_id=uuid.UUID(order.id),
                    provider=provider,
                    amount_minor=order.total_amount,
                    currency=order.currency,
                    platform_fee=sum(s.platform_fee for s in splits),
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            existing = self.find_by_idempotency_key(idempotency_key)
            if existing is None:
                raise
            logger.info(
                "Concurrent authorize lost idempotency race",
                extra={"idempotency_key": idempotency_key, "payment_id": str(existing.id)},
            )
            return existing, False

        PaymentSplit.objects.using(uow.using).bulk_create(
            [
                PaymentSplit(
                    payment=payment,
                    merchant_id=uuid.UUID(split.merchant_id),
                    gross_amount=split.gross_amount,
                    platform_fee=split.platform_fee,
                    processing_fee=split.processing_fee,
                    net_amount=split.net_amount,
                    currency=order.currency,
                    escrow_release_date=split.escrow_release_date,
                )
                for split in splits
            ]
        )
        return payment, True

    def save_payment(self, uow: UnitOfWork, payment: Payment) -> None:
        uow.ensure_active()
        payment.save(using=uow.using)

    # -------------------------------------------------------------------------
    # Splits
    # -------------------------------------------------------------------------

    def splits_for(self, uow: UnitOfWork, payment: Payment) -> list[PaymentSplit]:
        uow.ensure_active()
        return list(
            PaymentSplit.objects.using(uow.using)
            .select_for_update()
            .filter(payment=payment)
            .order_by("created_at", "merchant_id")
        )

    def sync_split_status(self, uow: UnitOfWork, payment: Payment) -> int:
        """Set every split's status to the one implied by the payment's."""
        uow.ensure_active()
        return (
            PaymentSplit.objects.using(uow.using)
            .filter(payment=payment)
            .update(status=payment.split_status)
        )

    def save_splits(self, uow: UnitOfWork, splits: Iterable[PaymentSplit]) -> None:
        uow.ensure_active()
        PaymentSplit.objects.using(uow.using).bulk_update(
            list(splits), ["net_amount", "status"]
        )

    # -------------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------------

    def create_refund(
        self,
        uow: UnitOfWork,
        *,
        payment: Payment,
        amount: int,
        reason: str,
        line_item_id=None,
        actor_id=None,
    ) -> Refund:
        uow.ensure_active()
        return Refund.objects.using(uow.using).create(
            payment=payment,
            amount=amount,
            currency=payment.currency,
            reason=reason or "",
            order_line_item_id=line_item_id,
            created_by=str(actor_id) if actor_id else None,
        )

    def save_refund(self, uow: UnitOfWork, refund: Refund) -> None:
        uow.ensure_active()
        refund.save(using=uow.using)

    def refund_exists(self, payment: Payment, provider_refund_id: str) -> bool:
        """True if a refund with this provider reference is already booked."""
        return Refund.objects.filter(payment=payment, provider_refund_id=provider_refund_id).exists()

    # -------------------------------------------------------------------------
    # Webhook events
    # -------------------------------------------------------------------------

    def record_webhook_event(
        self, provider: str, event: ProviderEvent, payload: dict
    ) -> tuple[WebhookEvent, bool]:
        """
        Durably insert the event, or fetch it if this is a redelivery.

        Runs in its own short transaction so the record survives a later
        processing failure. A concurrent duplicate insert hits the unique
        constraint and falls back to the existing row.
        """
        try:
            with UnitOfWork() as uow:
                webhook_event = WebhookEvent.objects.using(uow.using).create(
                    provider=provider,
                    provider_event_id=event.id,
                    event_type=event.type,
                    payload=payload,
                )
            return webhook_event, True
        except IntegrityError:
            webhook_event = WebhookEvent.objects.get(
                provider=provider, provider_event_id=event.id
            )
            return webhook_event, False

    def get_webhook_event(self, webhook_event_id) -> WebhookEvent:
        return WebhookEvent.objects.get(pk=webhook_event_id)

    def lock_webhook_event(self, uow: UnitOfWork, webhook_event_id) -> WebhookEvent:
        uow.ensure_active()
        return WebhookEvent.objects.using(uow.using).select_for_update().get(pk=webhook_event_id)

    def save_webhook_event(self, webhook_event: WebhookEvent, uow: UnitOfWork | None = None) -> None:
        if uow is not None:
            uow.ensure_active()
            webhook_event.save(using=uow.using)
        else:
            webhook_event.save()
