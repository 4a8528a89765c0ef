"""
Stripe adapter implementing the PaymentProvider capability.

Intents are created with manual capture so authorization and capture are
separate steps. Every Stripe call goes through _call() for consistent
logging, timing and error translation.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret

Usage:
    from payments.adapters import StripeProvider

    provider = StripeProvider.from_settings()
    intent = provider.create_intent(params)
    result = provider.capture(intent.id)
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.adapters.base import (
    CancelResult,
    CaptureResult,
    CreateIntentParams,
    IntentStatus,
    PaymentIntent,
    PaymentProvider,
    ProviderEvent,
    ProviderPaymentStatus,
    ProviderRefundStatus,
    RefundResult,
    load_json_payload,
)
from payments.exceptions import ProviderError
from payments.state_machines import ProviderName

if TYPE_CHECKING:
    from collections.abc import Callable


# Stripe PaymentIntent.status -> provider-neutral status
INTENT_STATUS_MAP: dict[str, IntentStatus] = {
    "requires_payment_method": IntentStatus.PENDING,
    "requires_confirmation": IntentStatus.PENDING,
    "processing": IntentStatus.PENDING,
    "requires_action": IntentStatus.REQUIRES_ACTION,
    "requires_capture": IntentStatus.AUTHORIZED,
    "succeeded": IntentStatus.SUCCEEDED,
    "canceled": IntentStatus.CANCELLED,
}

REFUND_STATUS_MAP: dict[str, ProviderRefundStatus] = {
    "pending": ProviderRefundStatus.PENDING,
    "requires_action": ProviderRefundStatus.PENDING,
    "succeeded": ProviderRefundStatus.SUCCEEDED,
    "failed": ProviderRefundStatus.FAILED,
    "canceled": ProviderRefundStatus.FAILED,
}

# Stripe only accepts these values for Refund.reason; anything else goes
# into refund metadata.
STRIPE_REFUND_REASONS = {"duplicate", "fraudulent", "requested_by_customer"}


class StripeProvider(PaymentProvider):
    """
    Stripe gateway adapter.

    The API key is passed per request rather than set globally, so several
    configured instances can coexist in one process.
    """

    name = ProviderName.STRIPE

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls) -> StripeProvider:
        return cls(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_intent(self, params: CreateIntentParams) -> PaymentIntent:
        metadata = {
            **params.metadata,
            "order_id": params.order_id,
            "merchant_ids": ",".join(params.merchant_ids),
        }
        intent = self._call(
            "create_intent",
            lambda: stripe.PaymentIntent.create(
                amount=params.amount,
                currency=params.currency.lower(),
                capture_method="manual",
                metadata=metadata,
                customer=params.customer.id if params.customer else None,
                receipt_email=params.customer.email if params.customer else None,
                automatic_payment_methods={"enabled": True},
                api_key=self.api_key,
                idempotency_key=params.idempotency_key,
            ),
            order_id=params.order_id,
            amount=params.amount,
        )
        status = INTENT_STATUS_MAP.get(intent.status, IntentStatus.PENDING)
        next_action = intent.get("next_action") or {}
        redirect = next_action.get("redirect_to_url") or {}
        return PaymentIntent(
            id=intent.id,
            status=status,
            amount=intent.amount,
            currency=intent.currency.upper(),
            requires_action=status == IntentStatus.REQUIRES_ACTION,
            action_url=redirect.get("url"),
            client_handle=intent.client_secret,
            provider_status=intent.status,
        )

    def capture(self, intent_id: str, amount: int | None = None) -> CaptureResult:
        kwargs: dict[str, Any] = {}
        if amount is not None:
            kwargs["amount_to_capture"] = amount
        intent = self._call(
            "capture",
            lambda: stripe.PaymentIntent.capture(intent_id, api_key=self.api_key, **kwargs),
            intent_id=intent_id,
            amount=amount,
        )
        status = INTENT_STATUS_MAP.get(intent.status, IntentStatus.PENDING)
        success = status == IntentStatus.SUCCEEDED
        return CaptureResult(
            success=success,
            amount=intent.amount_received or 0,
            status=status,
            error=None if success else f"Unexpected intent status after capture: {intent.status}",
        )

    def refund(self, intent_id: str, amount: int, reason: str | None = None) -> RefundResult:
        kwargs: dict[str, Any] = {"metadata": {"reason": reason or ""}}
        if reason in STRIPE_REFUND_REASONS:
            kwargs["reason"] = reason
        refund = self._call(
            "refund",
            lambda: stripe.Refund.create(
                payment_intent=intent_id,
                amount=amount,
                api_key=self.api_key,
                **kwargs,
            ),
            intent_id=intent_id,
            amount=amount,
        )
        status = REFUND_STATUS_MAP.get(refund.status, ProviderRefundStatus.PENDING)
        success = status != ProviderRefundStatus.FAILED
        return RefundResult(
            success=success,
            refund_id=refund.id,
            amount=refund.amount,
            status=status,
            error=None if success else refund.get("failure_reason") or "Refund failed",
            error_code=None if success else refund.get("failure_reason"),
        )

    def get_status(self, intent_id: str) -> ProviderPaymentStatus:
        intent = self._call(
            "get_status",
            lambda: stripe.PaymentIntent.retrieve(
                intent_id, expand=["latest_charge"], api_key=self.api_key
            ),
            intent_id=intent_id,
        )
        charge = intent.get("latest_charge")
        refunded = charge.get("amount_refunded", 0) if isinstance(charge, dict) else 0
        return ProviderPaymentStatus(
            id=intent.id,
            status=INTENT_STATUS_MAP.get(intent.status, IntentStatus.PENDING),
            amount=intent.amount,
            currency=intent.currency.upper(),
            captured_amount=intent.amount_received or 0,
            refunded_amount=refunded or 0,
        )

    def cancel(self, intent_id: str) -> CancelResult:
        intent = self._call(
            "cancel",
            lambda: stripe.PaymentIntent.cancel(intent_id, api_key=self.api_key),
            intent_id=intent_id,
        )
        status = INTENT_STATUS_MAP.get(intent.status, IntentStatus.PENDING)
        return CancelResult(success=status == IntentStatus.CANCELLED, status=status)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        if not signature or not self.webhook_secret:
            return False
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            self.get_logger().warning(
                "Stripe webhook signature verification failed",
                extra={"error": str(e)},
            )
            return False
        return True

    def parse_event(self, payload: bytes) -> ProviderEvent:
        data = load_json_payload(payload)
        obj = (data.get("data") or {}).get("object") or {}
        object_type = obj.get("object")

        if object_type == "payment_intent":
            intent_id = obj.get("id")
            amount = obj.get("amount_capturable") or obj.get("amount_received") or obj.get("amount")
        else:
            intent_id = obj.get("payment_intent")
            amount = obj.get("amount_captured") or obj.get("amount")

        refund_id = None
        refunds = (obj.get("refunds") or {}).get("data") or []
        if refunds:
            refund_id = refunds[0].get("id")

        created = data.get("created")
        created_at = (
            datetime.fromtimestamp(created, tz=timezone.utc)
            if isinstance(created, (int, float))
            else datetime.now(tz=timezone.utc)
        )

        return ProviderEvent(
            id=data.get("id") or "",
            type=data.get("type") or "",
            intent_id=intent_id,
            created_at=created_at,
            amount=amount,
            refunded_amount=obj.get("amount_refunded"),
            refund_id=refund_id,
            failure_message=(obj.get("last_payment_error") or {}).get("message"),
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _call(self, operation: str, func: Callable[[], Any], **context: Any) -> Any:
        """Run a Stripe call with timing logs and error translation."""
        logger = self.get_logger()
        log_context = {"provider": self.name, "operation": operation, **context}
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)
        try:
            result = func()
        except stripe.StripeError as e:
            duration_ms = (time.time() - start_time) * 1000
            raise self._translate_error(e, log_context, duration_ms) from e

        logger.info(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
        )
        return result

    def _translate_error(
        self,
        error: stripe.StripeError,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> ProviderError:
        """
        Translate Stripe exceptions to ProviderError.

        Rate limits, connection failures (including timeouts) and Stripe
        5xx errors are retryable; card, request and auth errors are not.
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}
        code = getattr(error, "code", None)
        http_status = getattr(error, "http_status", None)

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            return ProviderError(
                str(error.user_message or error),
                provider=self.name,
                provider_code=decline_code or code,
                status_code=http_status,
                error_code="CARD_DECLINED",
            )

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            return ProviderError(
                "Stripe rate limit exceeded. Please retry.",
                provider=self.name,
                provider_code=code or "rate_limit",
                status_code=http_status,
                is_retryable=True,
            )

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": code},
            )
            return ProviderError(
                str(error),
                provider=self.name,
                provider_code=code,
                status_code=http_status,
            )

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            return ProviderError(
                "Stripe authentication failed",
                provider=self.name,
                provider_code="authentication_error",
                status_code=http_status,
            )

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            return ProviderError(
                "Could not connect to Stripe. Please retry.",
                provider=self.name,
                provider_code="api_connection_error",
                is_retryable=True,
                error_code="PROVIDER_UNAVAILABLE",
            )

        logger.error(
            f"Stripe API error: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        return ProviderError(
            "Stripe service error. Please retry.",
            provider=self.name,
            provider_code=code or "api_error",
            status_code=http_status,
            is_retryable=http_status is None or http_status >= 500,
            error_code="PROVIDER_UNAVAILABLE",
        )
