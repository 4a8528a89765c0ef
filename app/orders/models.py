"""
Order and OrderItem models.

Only the fields the payment core needs are modelled here: currency, total,
and per-item merchant, price, quantity and fulfillment type.

Usage:
    from orders.models import Order, OrderItem, ItemType

    order = Order.objects.create(customer_id=uuid4(), currency="USD", total_amount=3799)
    OrderItem.objects.create(
        order=order,
        merchant_id=merchant_id,
        product_name="Ceramic mug",
        unit_price=3799,
        quantity=1,
        item_type=ItemType.PHYSICAL,
    )
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class ItemType(models.TextChoices):
    """
    Fulfillment type of an order line item.

    Drives both the platform fee rate and the escrow hold period.
    """

    PHYSICAL = "physical", "Physical"
    DIGITAL = "digital", "Digital"
    SERVICE = "service", "Service"


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    Customer order spanning one or more merchants.

    Fields:
        customer_id: Buyer identifier (owned by the auth collaborator)
        currency: ISO 4217 currency code, upper-case
        total_amount: Order total in minor currency units
    """

    customer_id = models.UUIDField(
        db_index=True,
        help_text="Buyer identifier",
    )
    currency = models.CharField(
        max_length=3,
        default="USD",
        help_text="ISO 4217 currency code (upper-case)",
    )
    total_amount = models.PositiveBigIntegerField(
        help_text="Order total in smallest currency unit",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"

    def __str__(self) -> str:
        return f"Order({self.id}, {self.total_amount} {self.currency})"

    def save(self, *args, **kwargs):
        self.currency = self.currency.upper()
        super().save(*args, **kwargs)


class OrderItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    One line of an order, sold by a single merchant.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Order this line belongs to",
    )
    merchant_id = models.UUIDField(
        db_index=True,
        help_text="Merchant selling this item",
    )
    product_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Display name captured at checkout",
    )
    unit_price = models.PositiveBigIntegerField(
        help_text="Unit price in smallest currency unit",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        help_text="Number of units",
    )
    item_type = models.CharField(
        max_length=20,
        choices=ItemType.choices,
        default=ItemType.PHYSICAL,
        help_text="Fulfillment type (physical, digital, service)",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Order Item"
        verbose_name_plural = "Order Items"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="order_item_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"OrderItem({self.id}, {self.quantity} x {self.unit_price})"

    @property
    def total(self) -> int:
        """Line total in minor units."""
        return self.unit_price * self.quantity
