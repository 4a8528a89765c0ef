"""
Payment gateway adapters.

Each gateway implements the PaymentProvider capability; the registry picks
one per currency.

Usage:
    from payments.adapters import ProviderRegistry, CreateIntentParams
"""

from payments.adapters.base import (
    CancelResult,
    CaptureResult,
    CreateIntentParams,
    CustomerInfo,
    IntentLineItem,
    IntentStatus,
    PaymentIntent,
    PaymentProvider,
    ProviderEvent,
    ProviderPaymentStatus,
    ProviderRefundStatus,
    RefundResult,
)
from payments.adapters.network_intl_adapter import NetworkIntlProvider
from payments.adapters.registry import ProviderRegistry
from payments.adapters.stripe_adapter import StripeProvider
from payments.adapters.yookassa_adapter import YooKassaProvider

__all__ = [
    "CancelResult",
    "CaptureResult",
    "CreateIntentParams",
    "CustomerInfo",
    "IntentLineItem",
    "IntentStatus",
    "PaymentIntent",
    "PaymentProvider",
    "ProviderEvent",
    "ProviderPaymentStatus",
    "ProviderRefundStatus",
    "RefundResult",
    "NetworkIntlProvider",
    "ProviderRegistry",
    "StripeProvider",
    "YooKassaProvider",
]
