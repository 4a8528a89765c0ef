"""
In-memory payment provider for service and webhook tests.

FakeProvider records every call and answers with configurable results.
Webhook bodies are plain JSON signed with a hex HMAC-SHA256, so tests can
build events without any gateway-specific envelope:

    {"id": "evt_1", "type": "payment_intent.succeeded",
     "intent_id": "pi_1", "amount": 3799}
"""

import itertools
import json

from django.utils import timezone

from payments.adapters import (
    CancelResult,
    CaptureResult,
    IntentStatus,
    PaymentIntent,
    PaymentProvider,
    ProviderEvent,
    ProviderPaymentStatus,
    ProviderRefundStatus,
    RefundResult,
)
from payments.adapters.base import hmac_sha256_hex, load_json_payload, verify_hmac_sha256

WEBHOOK_SECRET = "whsec_fake"


class FakeProvider(PaymentProvider):
    """
    Scriptable PaymentProvider.

    Set ``create_error`` / ``capture_error`` / ``refund_error`` to a
    ProviderError to make that call raise, or flip ``capture_success`` /
    ``refund_success`` / ``cancel_success`` to report a soft failure.
    """

    def __init__(self, name="stripe", intent_status=IntentStatus.AUTHORIZED):
        self.name = name
        self.intent_status = intent_status
        self.webhook_secret = WEBHOOK_SECRET
        self.calls = []
        self.create_error = None
        self.capture_error = None
        self.refund_error = None
        self.capture_success = True
        self.refund_success = True
        self.cancel_success = True
        self._ids = itertools.count(1)

    def count(self, operation):
        return sum(1 for name, _ in self.calls if name == operation)

    def last_call(self, operation):
        return [args for name, args in self.calls if name == operation][-1]

    def create_intent(self, params):
        self.calls.append(("create_intent", params))
        if self.create_error:
            raise self.create_error
        intent_id = f"fake_pi_{next(self._ids)}"
        requires_action = self.intent_status == IntentStatus.REQUIRES_ACTION
        return PaymentIntent(
            id=intent_id,
            status=self.intent_status,
            amount=params.amount,
            currency=params.currency,
            requires_action=requires_action,
            action_url="https://pay.example.com/3ds" if requires_action else None,
            client_handle=f"{intent_id}_secret",
        )

    def capture(self, intent_id, amount=None):
        self.calls.append(("capture", (intent_id, amount)))
        if self.capture_error:
            raise self.capture_error
        if not self.capture_success:
            return CaptureResult(
                success=False,
                amount=0,
                status=IntentStatus.AUTHORIZED,
                error="Capture window expired",
                error_code="capture_expired",
            )
        return CaptureResult(success=True, amount=amount or 0, status=IntentStatus.SUCCEEDED)

    def refund(self, intent_id, amount, reason=None):
        self.calls.append(("refund", (intent_id, amount, reason)))
        if self.refund_error:
            raise self.refund_error
        if not self.refund_success:
            return RefundResult(
                success=False,
                refund_id=None,
                amount=amount,
                status=ProviderRefundStatus.FAILED,
                error="Refund declined",
            )
        return RefundResult(
            success=True,
            refund_id=f"fake_re_{next(self._ids)}",
            amount=amount,
            status=ProviderRefundStatus.SUCCEEDED,
        )

    def get_status(self, intent_id):
        self.calls.append(("get_status", intent_id))
        return ProviderPaymentStatus(
            id=intent_id,
            status=IntentStatus.AUTHORIZED,
            amount=3799,
            currency="USD",
        )

    def cancel(self, intent_id):
        self.calls.append(("cancel", intent_id))
        if not self.cancel_success:
            return CancelResult(
                success=False, status=IntentStatus.SUCCEEDED, error="Already captured"
            )
        return CancelResult(success=True, status=IntentStatus.CANCELLED)

    def verify_signature(self, payload, signature):
        return verify_hmac_sha256(self.webhook_secret, payload, signature)

    def parse_event(self, payload):
        data = load_json_payload(payload)
        return ProviderEvent(
            id=data.get("id") or "",
            type=data.get("type") or "",
            intent_id=data.get("intent_id"),
            created_at=timezone.now(),
            amount=data.get("amount"),
            refunded_amount=data.get("refunded_amount"),
            refund_id=data.get("refund_id"),
            failure_message=data.get("message"),
        )


def signed_body(data, secret=WEBHOOK_SECRET):
    """Return (body, signature) for a webhook payload."""
    body = json.dumps(data).encode()
    return body, hmac_sha256_hex(secret, body)
