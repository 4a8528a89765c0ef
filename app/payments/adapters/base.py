"""
Provider capability contract shared by every payment gateway adapter.

Each gateway is wrapped once in a PaymentProvider subclass. Adapters carry
no business logic: they translate between these typed records and the
gateway's API, and raise ProviderError for anything the gateway rejects.

The raw webhook body never leaves the adapter; parse_event() returns a
ProviderEvent holding only the fields the reconciler needs.

Usage:
    from payments.adapters import CreateIntentParams, ProviderRegistry

    provider = ProviderRegistry.default().select("USD")
    intent = provider.create_intent(
        CreateIntentParams(
            amount=3799,
            currency="USD",
            order_id=str(order.id),
            idempotency_key=payment.idempotency_key,
        )
    )
"""

from __future__ import annotations

import hashlib
import hmac
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from payments.exceptions import PaymentValidationError


# =============================================================================
# Status Types
# =============================================================================


class IntentStatus(str, Enum):
    """
    Provider-neutral status of a payment intent.

    AUTHORIZED means funds are reserved and awaiting capture; SUCCEEDED
    means funds were captured.
    """

    PENDING = "pending"
    REQUIRES_ACTION = "requires_action"
    AUTHORIZED = "authorized"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ProviderRefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass(frozen=True)
class IntentLineItem:
    """One order line as sent to gateways that need receipts."""

    name: str
    unit_price: int
    quantity: int
    item_type: str


@dataclass(frozen=True)
class CustomerInfo:
    id: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class CreateIntentParams:
    """
    Parameters for creating a payment intent.

    Attributes:
        amount: Amount in minor currency units
        currency: ISO 4217 code (upper-case)
        order_id: Order reference attached as gateway metadata
        idempotency_key: Forwarded to gateways that support idempotent creation
        customer: Optional buyer details
        merchant_ids: Merchants participating in the payment
        items: Line items for receipt/fiscalization
        return_url: Where redirect-based gateways send the buyer back
    """

    amount: int
    currency: str
    order_id: str
    idempotency_key: str
    customer: CustomerInfo | None = None
    merchant_ids: list[str] = field(default_factory=list)
    items: list[IntentLineItem] = field(default_factory=list)
    return_url: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.currency:
            raise ValueError("currency is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass(frozen=True)
class PaymentIntent:
    """
    Result of creating an intent.

    client_handle is the client secret or redirect token the storefront
    uses to finish the payment.
    """

    id: str
    status: IntentStatus
    amount: int
    currency: str
    requires_action: bool = False
    action_url: str | None = None
    client_handle: str | None = None
    provider_status: str | None = None


@dataclass(frozen=True)
class CaptureResult:
    success: bool
    amount: int
    status: IntentStatus
    error: str | None = None
    error_code: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: str | None
    amount: int
    status: ProviderRefundStatus
    error: str | None = None
    error_code: str | None = None


@dataclass(frozen=True)
class CancelResult:
    success: bool
    status: IntentStatus
    error: str | None = None


@dataclass(frozen=True)
class ProviderPaymentStatus:
    """Live view of an intent as the gateway sees it."""

    id: str
    status: IntentStatus
    amount: int
    currency: str
    captured_amount: int = 0
    refunded_amount: int = 0


@dataclass(frozen=True)
class ProviderEvent:
    """
    Typed webhook event handed to the reconciler.

    Attributes:
        id: Provider-scoped event id (dedup key)
        type: Provider event type, looked up in the dispatch table
        intent_id: Provider payment reference the event is about
        amount: Amount the event refers to (authorized/captured), if any
        refunded_amount: Cumulative refunded amount reported by the gateway
        refund_id: Provider refund reference for refund events
        failure_message: Gateway's failure description for failure events
        created_at: When the gateway created the event
    """

    id: str
    type: str
    intent_id: str | None
    created_at: datetime
    amount: int | None = None
    refunded_amount: int | None = None
    refund_id: str | None = None
    failure_message: str | None = None


# =============================================================================
# Provider Contract
# =============================================================================


class PaymentProvider(ABC):
    """
    Abstract base class for payment gateway adapters.

    Subclasses set ``name`` to the ProviderName value they implement.
    Every method either returns a typed result or raises ProviderError;
    gateway exceptions never escape unwrapped.
    """

    name: str = ""

    @abstractmethod
    def create_intent(self, params: CreateIntentParams) -> PaymentIntent:
        """Create a payment intent with manual capture."""

    @abstractmethod
    def capture(self, intent_id: str, amount: int | None = None) -> CaptureResult:
        """Capture a previously authorized intent, fully or partially."""

    @abstractmethod
    def refund(
        self, intent_id: str, amount: int, reason: str | None = None
    ) -> RefundResult:
        """Refund ``amount`` of a captured intent."""

    @abstractmethod
    def get_status(self, intent_id: str) -> ProviderPaymentStatus:
        """Fetch the intent's live status from the gateway."""

    @abstractmethod
    def verify_signature(self, payload: bytes, signature: str) -> bool:
        """Return True if ``signature`` authenticates ``payload``."""

    @abstractmethod
    def parse_event(self, payload: bytes) -> ProviderEvent:
        """Parse a verified webhook body into a ProviderEvent."""

    def cancel(self, intent_id: str) -> CancelResult:
        """Void an uncaptured intent. Gateways without voids report failure."""
        return CancelResult(
            success=False,
            status=IntentStatus.PENDING,
            error=f"{self.name} does not support cancellation",
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


# =============================================================================
# Helpers
# =============================================================================


def load_json_payload(payload: bytes | str) -> dict[str, Any]:
    """
    Decode a webhook body.

    Raises:
        PaymentValidationError: If the body is not a JSON object
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise PaymentValidationError(
            "Webhook payload is not valid JSON",
            error_code="INVALID_WEBHOOK_PAYLOAD",
            details={"error": str(e)},
        ) from e
    if not isinstance(data, dict):
        raise PaymentValidationError(
            "Webhook payload must be a JSON object",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    return data


def hmac_sha256_hex(secret: str, payload: bytes) -> str:
    """Hex HMAC-SHA256 of ``payload`` keyed with ``secret``."""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_hmac_sha256(secret: str, payload: bytes, signature: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature."""
    if not secret or not signature:
        return False
    expected = hmac_sha256_hex(secret, payload)
    return hmac.compare_digest(expected, signature.strip().lower())


def to_minor_units(value: str | float | int) -> int:
    """Convert a decimal major-unit amount ("37.99") to minor units (3799)."""
    return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount: int) -> str:
    """Format minor units as a two-decimal major-unit string (3799 -> "37.99")."""
    return f"{amount // 100}.{amount % 100:02d}"
