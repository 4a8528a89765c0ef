"""
YooKassa adapter (RUB payments).

Uses the YooKassa v3 REST API with HTTP Basic auth (shop id / secret key)
and two-stage payments (``capture: false``). Line items are sent as a
fiscal receipt because Russian law requires one for every online sale.

Webhook notifications carry no event id of their own; the dedup id is
``<event>:<object id>``, which is unique for each state a payment or
refund reaches. Notifications are authenticated with a hex HMAC-SHA256 of
the body in the ``Authorization`` header (optionally prefixed
``HMAC-SHA256``).

Configuration (via settings):
- YOOKASSA_SHOP_ID, YOOKASSA_SECRET_KEY: API credentials
- YOOKASSA_WEBHOOK_SECRET: Notification signing secret
- YOOKASSA_API_URL: API root (default https://api.yookassa.ru/v3)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from django.conf import settings

from payments.adapters.base import (
    CancelResult,
    CaptureResult,
    CreateIntentParams,
    IntentStatus,
    PaymentIntent,
    ProviderEvent,
    ProviderPaymentStatus,
    ProviderRefundStatus,
    RefundResult,
    load_json_payload,
    to_major_units,
    to_minor_units,
    verify_hmac_sha256,
)
from payments.adapters.http_gateway import HttpGatewayProvider
from payments.state_machines import ProviderName

PAYMENT_STATUS_MAP: dict[str, IntentStatus] = {
    "pending": IntentStatus.PENDING,
    "waiting_for_capture": IntentStatus.AUTHORIZED,
    "succeeded": IntentStatus.SUCCEEDED,
    "canceled": IntentStatus.CANCELLED,
}

REFUND_STATUS_MAP: dict[str, ProviderRefundStatus] = {
    "pending": ProviderRefundStatus.PENDING,
    "succeeded": ProviderRefundStatus.SUCCEEDED,
    "canceled": ProviderRefundStatus.FAILED,
}

# Receipt "payment_subject" per item type
PAYMENT_SUBJECTS = {
    "physical": "commodity",
    "digital": "payment",
    "service": "service",
}

# VAT code 4 = 20%
DEFAULT_VAT_CODE = 4


class YooKassaProvider(HttpGatewayProvider):
    """YooKassa gateway adapter."""

    name = ProviderName.YOOKASSA

    def __init__(
        self,
        shop_id: str,
        secret_key: str,
        webhook_secret: str,
        base_url: str = "https://api.yookassa.ru/v3",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, client=client)
        self.shop_id = shop_id
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls) -> YooKassaProvider:
        return cls(
            shop_id=settings.YOOKASSA_SHOP_ID,
            secret_key=settings.YOOKASSA_SECRET_KEY,
            webhook_secret=settings.YOOKASSA_WEBHOOK_SECRET,
            base_url=settings.YOOKASSA_API_URL,
            timeout=settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS,
        )

    def _auth(self) -> httpx.Auth:
        return httpx.BasicAuth(self.shop_id, self.secret_key)

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_intent(self, params: CreateIntentParams) -> PaymentIntent:
        body: dict[str, Any] = {
            "amount": self._money(params.amount, params.currency),
            "capture": False,
            "description": f"Order {params.order_id}",
            "metadata": {**params.metadata, "order_id": params.order_id},
            "confirmation": {
                "type": "redirect",
                "return_url": params.return_url or settings.PAYMENT_DEFAULT_RETURN_URL,
            },
        }
        receipt = self._receipt(params)
        if receipt:
            body["receipt"] = receipt

        data = self._request(
            "POST",
            "/payments",
            operation="create_intent",
            json=body,
            headers={"Idempotence-Key": params.idempotency_key},
            order_id=params.order_id,
        )
        status = PAYMENT_STATUS_MAP.get(data.get("status"), IntentStatus.PENDING)
        confirmation_url = (data.get("confirmation") or {}).get("confirmation_url")
        if status == IntentStatus.PENDING and confirmation_url:
            status = IntentStatus.REQUIRES_ACTION
        return PaymentIntent(
            id=data["id"],
            status=status,
            amount=to_minor_units(data["amount"]["value"]),
            currency=data["amount"]["currency"],
            requires_action=confirmation_url is not None,
            action_url=confirmation_url,
            client_handle=confirmation_url,
            provider_status=data.get("status"),
        )

    def capture(self, intent_id: str, amount: int | None = None) -> CaptureResult:
        body: dict[str, Any] = {}
        if amount is not None:
            current = self.get_status(intent_id)
            body["amount"] = self._money(amount, current.currency)
        data = self._request(
            "POST",
            f"/payments/{intent_id}/capture",
            operation="capture",
            json=body,
            headers={"Idempotence-Key": str(uuid.uuid4())},
            intent_id=intent_id,
        )
        status = PAYMENT_STATUS_MAP.get(data.get("status"), IntentStatus.PENDING)
        success = status == IntentStatus.SUCCEEDED
        return CaptureResult(
            success=success,
            amount=to_minor_units(data["amount"]["value"]),
            status=status,
            error=None if success else self._cancellation_reason(data),
        )

    def refund(self, intent_id: str, amount: int, reason: str | None = None) -> RefundResult:
        current = self.get_status(intent_id)
        data = self._request(
            "POST",
            "/refunds",
            operation="refund",
            json={
                "payment_id": intent_id,
                "amount": self._money(amount, current.currency),
                "description": reason or "",
            },
            headers={"Idempotence-Key": str(uuid.uuid4())},
            intent_id=intent_id,
            amount=amount,
        )
        status = REFUND_STATUS_MAP.get(data.get("status"), ProviderRefundStatus.PENDING)
        success = status != ProviderRefundStatus.FAILED
        return RefundResult(
            success=success,
            refund_id=data.get("id"),
            amount=to_minor_units(data["amount"]["value"]),
            status=status,
            error=None if success else self._cancellation_reason(data),
        )

    def get_status(self, intent_id: str) -> ProviderPaymentStatus:
        data = self._request(
            "GET", f"/payments/{intent_id}", operation="get_status", intent_id=intent_id
        )
        status = PAYMENT_STATUS_MAP.get(data.get("status"), IntentStatus.PENDING)
        amount = to_minor_units(data["amount"]["value"])
        refunded = data.get("refunded_amount") or {}
        return ProviderPaymentStatus(
            id=data["id"],
            status=status,
            amount=amount,
            currency=data["amount"]["currency"],
            captured_amount=amount if status == IntentStatus.SUCCEEDED else 0,
            refunded_amount=to_minor_units(refunded["value"]) if refunded else 0,
        )

    def cancel(self, intent_id: str) -> CancelResult:
        data = self._request(
            "POST",
            f"/payments/{intent_id}/cancel",
            operation="cancel",
            json={},
            headers={"Idempotence-Key": str(uuid.uuid4())},
            intent_id=intent_id,
        )
        status = PAYMENT_STATUS_MAP.get(data.get("status"), IntentStatus.PENDING)
        return CancelResult(success=status == IntentStatus.CANCELLED, status=status)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        token = signature.strip()
        if token.upper().startswith("HMAC-SHA256 "):
            token = token.split(" ", 1)[1]
        return verify_hmac_sha256(self.webhook_secret, payload, token)

    def parse_event(self, payload: bytes) -> ProviderEvent:
        data = load_json_payload(payload)
        event_type = data.get("event") or ""
        obj = data.get("object") or {}
        is_refund = event_type.startswith("refund.")

        amount = None
        if obj.get("amount"):
            amount = to_minor_units(obj["amount"]["value"])

        created_at = datetime.now(tz=timezone.utc)
        if obj.get("created_at"):
            created_at = datetime.fromisoformat(obj["created_at"].replace("Z", "+00:00"))

        return ProviderEvent(
            id=f"{event_type}:{obj.get('id', '')}",
            type=event_type,
            intent_id=obj.get("payment_id") if is_refund else obj.get("id"),
            created_at=created_at,
            amount=amount,
            refund_id=obj.get("id") if is_refund else None,
            failure_message=self._cancellation_reason(obj) if event_type == "payment.canceled" else None,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _money(amount: int, currency: str) -> dict[str, str]:
        return {"value": to_major_units(amount), "currency": currency.upper()}

    def _receipt(self, params: CreateIntentParams) -> dict[str, Any] | None:
        if not params.items:
            return None
        customer: dict[str, str] = {}
        if params.customer and params.customer.email:
            customer["email"] = params.customer.email
        if params.customer and params.customer.phone:
            customer["phone"] = params.customer.phone
        return {
            "customer": customer,
            "items": [
                {
                    "description": item.name[:128] or "Item",
                    "quantity": str(item.quantity),
                    "amount": self._money(item.unit_price, params.currency),
                    "vat_code": DEFAULT_VAT_CODE,
                    "payment_subject": PAYMENT_SUBJECTS.get(item.item_type, "commodity"),
                    "payment_mode": "full_payment",
                }
                for item in params.items
            ],
        }

    @staticmethod
    def _cancellation_reason(data: dict[str, Any]) -> str | None:
        details = data.get("cancellation_details") or {}
        return details.get("reason")
