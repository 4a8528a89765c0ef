"""
Payment and PaymentSplit models.

Payment is the order-level money movement tracked from authorization
through capture and refunds. PaymentSplit is the share of a payment
attributed to one merchant, net of platform and processing fees.

Usage:
    from payments.models import Payment, PaymentSplit
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.create(
        order_id=order.id,
        provider="stripe",
        amount_minor=3799,
        currency="USD",
        idempotency_key="payment_<order>_<ts>",
    )

    # State transitions using django-fsm
    payment.authorize(amount=3799)  # pending -> authorized
    payment.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin

from payments.state_machines import (
    SPLIT_STATUS_FOR_PAYMENT,
    PaymentStatus,
    ProviderName,
    SplitStatus,
)


class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Order-level payment tracked through its provider lifecycle.

    Financial record: never deleted. Children reference it with PROTECT.

    State Flow:
        PENDING -> AUTHORIZED -> CAPTURED -> PARTIALLY_REFUNDED -> REFUNDED
        PENDING/AUTHORIZED/CAPTURED -> FAILED
        PENDING/AUTHORIZED -> CANCELLED

    Amount invariant (enforced by check constraints):
        refunded_amount <= captured_amount <= authorized_amount <= amount_minor
    """

    # ==========================================================================
    # References
    # ==========================================================================

    order_id = models.UUIDField(
        db_index=True,
        help_text="Order this payment settles",
    )

    provider = models.CharField(
        max_length=32,
        choices=ProviderName.choices,
        help_text="Gateway selected for this payment",
    )

    provider_payment_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text="Provider-assigned payment/intent reference",
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Caller-supplied or derived key making authorize retry-safe",
    )

    # ==========================================================================
    # Amounts (minor units)
    # ==========================================================================

    amount_minor = models.PositiveBigIntegerField(
        help_text="Requested amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code (upper-case)",
    )

    authorized_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount reserved by the provider",
    )

    captured_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount actually transferred",
    )

    refunded_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Sum of completed refunds",
    )

    platform_fee = models.PositiveBigIntegerField(
        default=0,
        help_text="Total platform fee across all splits",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Current payment state (managed by FSM)",
    )

    requires_action = models.BooleanField(
        default=False,
        help_text="Customer must complete an extra step (3DS, redirect)",
    )

    action_url = models.URLField(
        max_length=1024,
        blank=True,
        null=True,
        help_text="Where to send the customer to complete the action",
    )

    client_secret = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text="Client-side handle for completing the payment",
    )

    error_message = models.TextField(
        blank=True,
        null=True,
        help_text="Last provider error, if any",
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented on every save",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    authorized_at = models.DateTimeField(null=True, blank=True)
    captured_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["provider", "provider_payment_id"], name="payment_provider_ref_idx"),
            models.Index(fields=["order_id", "created_at"], name="payment_order_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_minor__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(authorized_amount__lte=F("amount_minor")),
                name="payment_authorized_lte_amount",
            ),
            models.CheckConstraint(
                condition=models.Q(captured_amount__lte=F("authorized_amount")),
                name="payment_captured_lte_authorized",
            ),
            models.CheckConstraint(
                condition=models.Q(refunded_amount__lte=F("captured_amount")),
                name="payment_refunded_lte_captured",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount_minor} {self.currency})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment on update."""
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def remaining_refundable(self) -> int:
        """Amount that can still be refunded."""
        return self.captured_amount - self.refunded_amount

    @property
    def is_fully_refunded(self) -> bool:
        return self.captured_amount > 0 and self.refunded_amount >= self.captured_amount

    @property
    def split_status(self) -> str:
        """Split status implied by the current payment status."""
        return SPLIT_STATUS_FOR_PAYMENT[self.status]

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.AUTHORIZED,
    )
    def authorize(self, amount: int | None = None):
        """
        Record the provider's reservation of funds.

        Transition: PENDING -> AUTHORIZED
        """
        self.authorized_amount = amount if amount is not None else self.amount_minor
        self.authorized_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.AUTHORIZED,
        target=PaymentStatus.CAPTURED,
    )
    def capture(self, amount: int):
        """
        Record a successful capture of ``amount``.

        Transition: AUTHORIZED -> CAPTURED
        """
        self.captured_amount = amount
        self.captured_at = timezone.now()
        self.error_message = None

    @transition(
        field=status,
        source=[PaymentStatus.CAPTURED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.PARTIALLY_REFUNDED,
    )
    def refund_partial(self, amount: int):
        """
        Add a partial refund.

        Transition: CAPTURED/PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED
        """
        self.refunded_amount += amount

    @transition(
        field=status,
        source=[PaymentStatus.CAPTURED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.REFUNDED,
    )
    def refund_full(self, amount: int):
        """
        Add the refund that exhausts the captured amount.

        Transition: CAPTURED/PARTIALLY_REFUNDED -> REFUNDED
        """
        self.refunded_amount += amount
        self.refunded_at = timezone.now()

    @transition(
        field=status,
        source=[
            PaymentStatus.PENDING,
            PaymentStatus.AUTHORIZED,
            PaymentStatus.CAPTURED,
        ],
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payment as failed after a provider error.

        Transition: PENDING/AUTHORIZED/CAPTURED -> FAILED
        """
        self.failed_at = timezone.now()
        if reason:
            self.error_message = reason

    @transition(
        field=status,
        source=[PaymentStatus.PENDING, PaymentStatus.AUTHORIZED],
        target=PaymentStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel before capture.

        Transition: PENDING/AUTHORIZED -> CANCELLED
        """
        self.cancelled_at = timezone.now()

    def apply_refund(self, amount: int) -> None:
        """
        Route a refund to refund_full or refund_partial.

        Raises:
            TransitionNotAllowed: If the payment is not refundable
        """
        if self.refunded_amount + amount >= self.captured_amount:
            self.refund_full(amount)
        else:
            self.refund_partial(amount)


class PaymentSplit(UUIDPrimaryKeyMixin, BaseModel):
    """
    One merchant's share of a payment.

    Invariants at creation:
        sum(gross_amount) == payment.amount_minor
        sum(net_amount + platform_fee + processing_fee) == payment.amount_minor

    net_amount is reduced by refunds; the fee columns keep their original
    values (fee refunds are computed but not re-collected).
    """

    payment = models.ForeignKey(
        Payment,
        on_delete=models.PROTECT,
        related_name="splits",
        help_text="Payment this split belongs to",
    )

    merchant_id = models.UUIDField(
        db_index=True,
        help_text="Merchant receiving this split",
    )

    gross_amount = models.PositiveBigIntegerField(
        help_text="Sum of the merchant's line item totals",
    )

    platform_fee = models.BigIntegerField(
        default=0,
        help_text="Marketplace commission",
    )

    processing_fee = models.BigIntegerField(
        default=0,
        help_text="Gateway processing fee attributed to this merchant",
    )

    net_amount = models.BigIntegerField(
        help_text="Amount owed to the merchant (gross - fees - refunds)",
    )

    currency = models.CharField(
        max_length=3,
        help_text="ISO 4217 currency code (upper-case)",
    )

    status = models.CharField(
        max_length=32,
        choices=SplitStatus.choices,
        default=SplitStatus.PENDING,
        db_index=True,
        help_text="Mirrors the payment's capture/refund lifecycle",
    )

    escrow_release_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Earliest date the net amount may be paid out",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Payment Split"
        verbose_name_plural = "Payment Splits"
        indexes = [
            models.Index(fields=["merchant_id", "status"], name="split_merchant_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["payment", "merchant_id"],
                name="unique_split_per_merchant",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentSplit({self.merchant_id}, gross={self.gross_amount}, net={self.net_amount})"
