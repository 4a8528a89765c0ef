"""
Fee and split calculation for multi-merchant payments.

Pure and deterministic: line items in, per-merchant splits out. The only
outside input is the per-merchant commission override, passed in as a
lookup callable so the calculator itself does no I/O.

Fee model:
    platform_fee   = gross x merchant override, if the merchant has one,
                     else sum(round(item_total x FEE_RATES[item_type]))
    processing_fee = round(gross x 2.9%) + 30
    net            = gross - platform_fee - processing_fee

All rounding is half-up to the minor unit, applied per merchant, so
sum(gross) equals the order total exactly. sum(net) may differ from a
whole-order calculation by up to one minor unit per merchant.

Escrow release date uses the hold period of the merchant's *first* line
item. Mixed-type merchants therefore get a single hold period.

Usage:
    from payments.services.split_calculator import SplitCalculator, SplitLineItem

    calculator = SplitCalculator(fee_override=lambda merchant_id: None)
    splits = calculator.calculate([
        SplitLineItem(merchant_id=m1, unit_price=6000, quantity=1, item_type="physical"),
    ])
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence


# =============================================================================
# Fee Tables
# =============================================================================

FEE_RATES: dict[str, Decimal] = {
    "physical": Decimal("0.15"),
    "digital": Decimal("0.20"),
    "service": Decimal("0.10"),
}

ESCROW_DAYS: dict[str, int] = {
    "physical": 7,
    "digital": 3,
    "service": 1,
}

DEFAULT_ITEM_TYPE = "physical"

PROCESSING_FEE_RATE = Decimal("0.029")
PROCESSING_FEE_FIXED = 30


def round_half_up(value: Decimal) -> int:
    """Round to the nearest minor unit, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class SplitLineItem:
    """Order line as seen by the calculator."""

    merchant_id: str
    unit_price: int
    quantity: int
    item_type: str

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class MerchantSplit:
    """
    Computed split for one merchant.

    Invariant: net_amount + platform_fee + processing_fee == gross_amount
    """

    merchant_id: str
    gross_amount: int
    platform_fee: int
    processing_fee: int
    net_amount: int
    escrow_release_date: datetime


@dataclass(frozen=True)
class RefundSplit:
    """
    Share of a refund attributed to one split.

    platform_fee_refund and processing_fee_refund are informational; only
    merchant_refund is deducted from the split's net amount.
    """

    merchant_refund: int
    platform_fee_refund: int
    processing_fee_refund: int


# =============================================================================
# Calculator
# =============================================================================


class SplitCalculator:
    """
    Computes per-merchant splits and proportional refund shares.

    Args:
        fee_override: Returns a merchant's commission rate, or None to use
            the item-type rate table.
        now: Clock used for escrow release dates (defaults to timezone.now)
    """

    def __init__(
        self,
        fee_override: Callable[[str], Decimal | None] | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self._fee_override = fee_override or (lambda merchant_id: None)
        self._now = now or timezone.now

    def calculate(self, items: Iterable[SplitLineItem]) -> list[MerchantSplit]:
        """
        Group items by merchant (first-seen order) and compute each split.

        Raises:
            ValueError: If there are no items
        """
        grouped: dict[str, list[SplitLineItem]] = {}
        for item in items:
            grouped.setdefault(str(item.merchant_id), []).append(item)

        if not grouped:
            raise ValueError("Cannot split a payment with no line items")

        now = self._now()
        return [
            self._merchant_split(merchant_id, merchant_items, now)
            for merchant_id, merchant_items in grouped.items()
        ]

    def _merchant_split(
        self, merchant_id: str, items: Sequence[SplitLineItem], now: datetime
    ) -> MerchantSplit:
        gross = sum(item.total for item in items)

        override = self._fee_override(merchant_id)
        if override is not None:
            platform_fee = round_half_up(Decimal(gross) * Decimal(override))
        else:
            platform_fee = sum(
                round_half_up(Decimal(item.total) * self.fee_rate(item.item_type))
                for item in items
            )

        processing_fee = self.processing_fee(gross)

        return MerchantSplit(
            merchant_id=merchant_id,
            gross_amount=gross,
            platform_fee=platform_fee,
            processing_fee=processing_fee,
            net_amount=gross - platform_fee - processing_fee,
            escrow_release_date=now + timedelta(days=self.escrow_days(items[0].item_type)),
        )

    @staticmethod
    def fee_rate(item_type: str) -> Decimal:
        return FEE_RATES.get(item_type, FEE_RATES[DEFAULT_ITEM_TYPE])

    @staticmethod
    def escrow_days(item_type: str) -> int:
        return ESCROW_DAYS.get(item_type, ESCROW_DAYS[DEFAULT_ITEM_TYPE])

    @staticmethod
    def processing_fee(gross: int) -> int:
        return round_half_up(Decimal(gross) * PROCESSING_FEE_RATE) + PROCESSING_FEE_FIXED

    @staticmethod
    def refund_split(
        net_amount: int,
        platform_fee: int,
        processing_fee: int,
        refund_amount: int,
        payment_amount: int,
    ) -> RefundSplit:
        """
        Proportional share of a refund for one split.

        ratio = refund_amount / payment_amount, each component rounded half-up.

        Example:
            refund_split(4896, 900, 204, refund_amount=2000, payment_amount=10000)
            # RefundSplit(merchant_refund=979, platform_fee_refund=180,
            #             processing_fee_refund=41)
        """
        if payment_amount <= 0:
            raise ValueError("payment_amount must be positive")
        ratio = Decimal(refund_amount) / Decimal(payment_amount)
        return RefundSplit(
            merchant_refund=round_half_up(Decimal(net_amount) * ratio),
            platform_fee_refund=round_half_up(Decimal(platform_fee) * ratio),
            processing_fee_refund=round_half_up(Decimal(processing_fee) * ratio),
        )
