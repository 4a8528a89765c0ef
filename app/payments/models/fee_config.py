"""
Per-merchant platform fee override.

A merchant with a MerchantFeeConfig pays ``commission_rate`` of gross as
platform fee instead of the per-item-type rate table.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class MerchantFeeConfig(UUIDPrimaryKeyMixin, BaseModel):
    """Negotiated commission rate for one merchant."""

    merchant_id = models.UUIDField(
        unique=True,
        help_text="Merchant the override applies to",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Fraction of gross taken as platform fee (0.1200 = 12%)",
    )

    class Meta:
        verbose_name = "Merchant Fee Config"
        verbose_name_plural = "Merchant Fee Configs"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(commission_rate__gte=Decimal("0"))
                & models.Q(commission_rate__lte=Decimal("1")),
                name="merchant_commission_rate_range",
            ),
        ]

    def __str__(self) -> str:
        return f"MerchantFeeConfig({self.merchant_id}, {self.commission_rate})"
