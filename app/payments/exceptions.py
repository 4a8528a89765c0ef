"""
Payment-specific exceptions for payment operations.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── WebhookSignatureError - Webhook failed signature verification
    └── PaymentProcessingError - Payment processing failures

    OrderNotFoundError, PaymentNotFoundError, UnknownProviderError
        (inherit NotFoundError, HTTP 404)
    PaymentValidationError, RefundAmountExceededError
        (inherit ValidationError, HTTP 400)
    InvalidPaymentStateError, InvalidStateTransitionError
        (inherit ConflictError, HTTP 409)
    ProviderError (inherits ExternalServiceError, HTTP 502)

Usage:
    from payments.exceptions import ProviderError, RefundAmountExceededError

    raise RefundAmountExceededError(
        "Refund amount exceeds refundable balance",
        details={"requested": 5000, "max_refundable": 2799},
    )

    try:
        orchestrator.capture(payment_id)
    except ProviderError as e:
        if e.is_retryable:
            schedule_retry()
        else:
            contact_support(e.provider_code, e.payment_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for payment operations that fit no other category.

    Example:
        try:
            reconciler.process_webhook("stripe", body, signature)
        except PaymentError as e:
            return HttpResponse(status=400)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentProcessingError(PaymentError):
    """Raised when payment processing fails outside the provider call."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


class WebhookSignatureError(PaymentError):
    """
    Raised when a webhook fails signature verification.

    Raised before anything is persisted; the event is rejected outright.
    """

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"
    http_status: int = 400


# =============================================================================
# Not Found
# =============================================================================


class OrderNotFoundError(NotFoundError):
    """Raised when the order to pay for does not exist or has no items."""

    default_error_code: str = "ORDER_NOT_FOUND"


class PaymentNotFoundError(NotFoundError):
    """
    Raised when a payment entity cannot be found.

    Example:
        payment = Payment.objects.filter(id=payment_id).first()
        if not payment:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class UnknownProviderError(NotFoundError):
    """Raised when a provider name has no registered implementation."""

    default_error_code: str = "UNKNOWN_PROVIDER"


# =============================================================================
# Validation
# =============================================================================


class PaymentValidationError(ValidationError):
    """
    Raised when payment validation fails.

    Use for:
    - Non-positive amounts
    - Order totals that do not match their line items
    - Malformed webhook payloads
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class RefundAmountExceededError(PaymentValidationError):
    """Raised when a refund asks for more than captured minus refunded."""

    default_error_code: str = "REFUND_AMOUNT_EXCEEDED"


# =============================================================================
# State
# =============================================================================


class InvalidPaymentStateError(ConflictError):
    """
    Raised when an operation is attempted from the wrong payment status.

    details always carry ``current_status`` and ``required_status``.
    """

    default_error_code: str = "INVALID_PAYMENT_STATE"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in our standard error format.

    Example:
        from django_fsm import TransitionNotAllowed

        try:
            payment.capture(amount)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot capture payment from '{payment.status}' state",
                details={"current_state": payment.status, "transition": "capture"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Provider
# =============================================================================


class ProviderError(ExternalServiceError):
    """
    Wrapped failure from a payment gateway.

    Attributes:
        provider: Provider name (stripe, yookassa, network_intl)
        provider_code: Gateway error code, if the gateway returned one
        status_code: HTTP status from the gateway, if any
        is_retryable: Whether the same request may succeed later
        payment_status: Ledger status of the payment after the failure,
            filled in by the orchestrator so callers can tell "retry" from
            "contact support"
    """

    default_error_code: str = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        provider: str,
        provider_code: str | None = None,
        status_code: int | None = None,
        is_retryable: bool = False,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        details["provider"] = provider
        if provider_code:
            details["provider_code"] = provider_code
        if status_code is not None:
            details["status_code"] = status_code
        details["is_retryable"] = is_retryable
        super().__init__(message, error_code=error_code, details=details)
        self.provider = provider
        self.provider_code = provider_code
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.payment_status: str | None = None

    def with_payment_status(self, status: str) -> ProviderError:
        """Attach the ledger status of the affected payment and return self."""
        self.payment_status = status
        self.details["payment_status"] = status
        return self


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "PaymentError",
    "PaymentProcessingError",
    "WebhookSignatureError",
    "OrderNotFoundError",
    "PaymentNotFoundError",
    "UnknownProviderError",
    "PaymentValidationError",
    "RefundAmountExceededError",
    "InvalidPaymentStateError",
    "InvalidStateTransitionError",
    "ProviderError",
]
