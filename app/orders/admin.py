"""
Admin configuration for orders app.
"""

from django.contrib import admin

from orders.models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ["merchant_id", "product_name", "unit_price", "quantity", "item_type"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ["id", "customer_id", "currency", "total_amount", "created_at"]
    list_filter = ["currency"]
    search_fields = ["id", "customer_id"]
    inlines = [OrderItemInline]
