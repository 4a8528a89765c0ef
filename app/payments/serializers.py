"""
DRF serializers for payments app.

This module provides serializers for:
- Payment display with its splits and refunds
- Authorize, capture and refund requests

Related files:
    - models/: Payment, PaymentSplit, Refund
    - views.py: Payment API views

Usage:
    serializer = PaymentSerializer(payment)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment, PaymentSplit, Refund


class PaymentSplitSerializer(serializers.ModelSerializer):
    """Merchant share of a payment."""

    class Meta:
        model = PaymentSplit
        fields = [
            "id",
            "merchant_id",
            "gross_amount",
            "platform_fee",
            "processing_fee",
            "net_amount",
            "currency",
            "status",
            "escrow_release_date",
        ]
        read_only_fields = fields


class RefundSerializer(serializers.ModelSerializer):
    class Meta:
        model = Refund
        fields = [
            "id",
            "amount",
            "currency",
            "status",
            "reason",
            "order_line_item_id",
            "provider_refund_id",
            "error_message",
            "processed_at",
            "created_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment serializer for API responses.

    Fields:
        amount_minor / authorized / captured / refunded: Minor-unit amounts
        remaining_refundable: captured_amount - refunded_amount
        requires_action / action_url / client_secret: What the storefront
            needs to complete 3DS or redirect flows
        splits: Per-merchant shares
        refunds: Refund attempts, newest first
    """

    remaining_refundable = serializers.IntegerField(read_only=True)
    splits = PaymentSplitSerializer(many=True, read_only=True)
    refunds = RefundSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "order_id",
            "provider",
            "provider_payment_id",
            "idempotency_key",
            "status",
            "amount_minor",
            "currency",
            "authorized_amount",
            "captured_amount",
            "refunded_amount",
            "remaining_refundable",
            "platform_fee",
            "requires_action",
            "action_url",
            "client_secret",
            "error_message",
            "authorized_at",
            "captured_at",
            "refunded_at",
            "failed_at",
            "cancelled_at",
            "created_at",
            "updated_at",
            "splits",
            "refunds",
        ]
        read_only_fields = fields


class AuthorizePaymentSerializer(serializers.Serializer):
    """
    Serializer for payment authorization requests.

    Fields:
        order_id: Order to pay for
        idempotency_key: Optional retry key
        return_url: Redirect target for redirect-based gateways
        customer_email / customer_phone: Receipt details for gateways
            that need them
    """

    order_id = serializers.UUIDField()
    idempotency_key = serializers.CharField(max_length=255, required=False, allow_blank=False)
    return_url = serializers.URLField(required=False)
    customer_email = serializers.EmailField(required=False)
    customer_phone = serializers.CharField(max_length=32, required=False)


class CapturePaymentSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1, required=False)


class RefundPaymentSerializer(serializers.Serializer):
    """
    Serializer for refund requests.

    Fields:
        amount: Minor units to refund (must not exceed remaining refundable)
        reason: Why the refund is issued
        line_item_id: Order line the refund is for, if any
    """

    amount = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=500)
    line_item_id = serializers.UUIDField(required=False)
