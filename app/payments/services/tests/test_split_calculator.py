"""
Tests for SplitCalculator.

Tests cover:
- Per-item-type platform fees and the processing fee
- Per-merchant commission overrides
- Half-up rounding to the minor unit
- Escrow release dates
- Proportional refund shares
- Conservation of the order total across random orders
"""

import random
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from payments.services.split_calculator import (
    SplitCalculator,
    SplitLineItem,
    round_half_up,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def calculator():
    return SplitCalculator(now=lambda: NOW)


def item(merchant_id, unit_price, quantity=1, item_type="physical"):
    return SplitLineItem(
        merchant_id=merchant_id,
        unit_price=unit_price,
        quantity=quantity,
        item_type=item_type,
    )


# =============================================================================
# Fees
# =============================================================================


class TestFees:
    def test_physical_item_fees(self, calculator):
        """60.00 physical: 15% platform fee, 2.9% + 0.30 processing."""
        [split] = calculator.calculate([item("m1", 6000)])

        assert split.gross_amount == 6000
        assert split.platform_fee == 900
        assert split.processing_fee == 204
        assert split.net_amount == 4896

    def test_rates_per_item_type(self, calculator):
        splits = calculator.calculate(
            [
                item("physical", 10000, item_type="physical"),
                item("digital", 10000, item_type="digital"),
                item("service", 10000, item_type="service"),
            ]
        )

        assert [s.platform_fee for s in splits] == [1500, 2000, 1000]

    def test_unknown_item_type_uses_physical_rate(self, calculator):
        [split] = calculator.calculate([item("m1", 10000, item_type="gift_card")])

        assert split.platform_fee == 1500

    def test_platform_fee_rounds_half_up_per_item(self, calculator):
        """37.99 x 15% = 5.6985 -> 5.70; 37.99 x 2.9% = 1.10171 -> 1.10 + 0.30."""
        [split] = calculator.calculate([item("m1", 3799)])

        assert split.platform_fee == 570
        assert split.processing_fee == 140
        assert split.net_amount == 3089

    def test_exact_half_rounds_up(self):
        assert round_half_up(Decimal("1.5")) == 2
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.49")) == 2

    def test_merchant_override_replaces_rate_table(self):
        rates = {"m1": Decimal("0.12")}
        calculator = SplitCalculator(fee_override=rates.get, now=lambda: NOW)

        splits = calculator.calculate(
            [item("m1", 6000, item_type="digital"), item("m2", 6000, item_type="digital")]
        )

        assert splits[0].platform_fee == 720
        assert splits[1].platform_fee == 1200

    def test_zero_override_charges_no_platform_fee(self):
        calculator = SplitCalculator(fee_override=lambda merchant_id: Decimal("0"))

        [split] = calculator.calculate([item("m1", 5000)])

        assert split.platform_fee == 0
        assert split.net_amount == 5000 - split.processing_fee


# =============================================================================
# Grouping
# =============================================================================


class TestGrouping:
    def test_groups_by_merchant_in_first_seen_order(self, calculator):
        splits = calculator.calculate(
            [
                item("m2", 1000),
                item("m1", 2000),
                item("m2", 500, quantity=2),
            ]
        )

        assert [s.merchant_id for s in splits] == ["m2", "m1"]
        assert splits[0].gross_amount == 2000
        assert splits[1].gross_amount == 2000

    def test_quantity_multiplies_unit_price(self, calculator):
        [split] = calculator.calculate([item("m1", 1250, quantity=4)])

        assert split.gross_amount == 5000

    def test_no_items_raises(self, calculator):
        with pytest.raises(ValueError, match="no line items"):
            calculator.calculate([])


# =============================================================================
# Escrow
# =============================================================================


class TestEscrowRelease:
    @pytest.mark.parametrize(
        "item_type,days",
        [("physical", 7), ("digital", 3), ("service", 1)],
    )
    def test_hold_period_by_item_type(self, calculator, item_type, days):
        [split] = calculator.calculate([item("m1", 1000, item_type=item_type)])

        assert split.escrow_release_date == NOW + timedelta(days=days)

    def test_mixed_merchant_uses_first_item_type(self, calculator):
        [split] = calculator.calculate(
            [item("m1", 1000, item_type="service"), item("m1", 1000, item_type="physical")]
        )

        assert split.escrow_release_date == NOW + timedelta(days=1)


# =============================================================================
# Refund Shares
# =============================================================================


class TestRefundSplit:
    def test_proportional_share(self):
        """Refunding 20.00 of a 100.00 payment takes 20% of each component."""
        share = SplitCalculator.refund_split(
            net_amount=4896,
            platform_fee=900,
            processing_fee=204,
            refund_amount=2000,
            payment_amount=10000,
        )

        assert share.merchant_refund == 979
        assert share.platform_fee_refund == 180
        assert share.processing_fee_refund == 41
        assert 4896 - share.merchant_refund == 3917

    def test_full_refund_returns_whole_net(self):
        share = SplitCalculator.refund_split(3089, 570, 140, 3799, 3799)

        assert share.merchant_refund == 3089

    def test_rejects_non_positive_payment_amount(self):
        with pytest.raises(ValueError):
            SplitCalculator.refund_split(100, 10, 5, 50, 0)


# =============================================================================
# Conservation
# =============================================================================


class TestConservation:
    def test_random_orders_conserve_total(self):
        rng = random.Random(20260301)
        calculator = SplitCalculator(
            fee_override=lambda merchant_id: Decimal("0.125") if merchant_id.endswith("0") else None,
            now=lambda: NOW,
        )
        merchants = [f"{uuid.uuid4().hex[:7]}{n}" for n in range(6)]

        for _ in range(200):
            items = [
                item(
                    rng.choice(merchants),
                    rng.randint(1, 250_000),
                    quantity=rng.randint(1, 5),
                    item_type=rng.choice(["physical", "digital", "service"]),
                )
                for _ in range(rng.randint(1, 8))
            ]
            total = sum(i.total for i in items)

            splits = calculator.calculate(items)

            assert sum(s.gross_amount for s in splits) == total
            for s in splits:
                assert s.net_amount + s.platform_fee + s.processing_fee == s.gross_amount
