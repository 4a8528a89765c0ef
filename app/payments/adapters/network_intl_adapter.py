"""
Network International (N-Genius) adapter (AED payments).

Orders are created with ``action: AUTH`` so capture is a separate call.
The order reference returned by the gateway is the provider payment
reference; capture, refund and cancel address the order by that reference.

Webhooks carry an ``eventName`` (AUTHORISED, CAPTURED, DECLINED, ...) and
the order under ``order.reference``. They are signed with a hex
HMAC-SHA256 of the body in the ``X-Signature`` header.

Configuration (via settings):
- NETWORK_INTL_API_KEY: Bearer API key
- NETWORK_INTL_OUTLET_ID: Outlet the orders belong to
- NETWORK_INTL_WEBHOOK_SECRET: Webhook signing secret
- NETWORK_INTL_API_URL: API root
"""

from __future__ import annotations

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
    verify_hmac_sha256,
)
from payments.adapters.http_gateway import HttpGatewayProvider
from payments.state_machines import ProviderName

ORDER_STATE_MAP: dict[str, IntentStatus] = {
    "STARTED": IntentStatus.PENDING,
    "PENDING": IntentStatus.PENDING,
    "AWAIT_3DS": IntentStatus.REQUIRES_ACTION,
    "AUTHORISED": IntentStatus.AUTHORIZED,
    "CAPTURED": IntentStatus.SUCCEEDED,
    "PURCHASED": IntentStatus.SUCCEEDED,
    "PARTIALLY_REFUNDED": IntentStatus.SUCCEEDED,
    "REFUNDED": IntentStatus.SUCCEEDED,
    "FAILED": IntentStatus.FAILED,
    "DECLINED": IntentStatus.FAILED,
    "REVERSED": IntentStatus.CANCELLED,
    "CANCELLED": IntentStatus.CANCELLED,
}


class NetworkIntlProvider(HttpGatewayProvider):
    """Network International gateway adapter."""

    name = ProviderName.NETWORK_INTL

    def __init__(
        self,
        api_key: str,
        outlet_id: str,
        webhook_secret: str,
        base_url: str = "https://api-gateway.ngenius-payments.com",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, client=client)
        self.api_key = api_key
        self.outlet_id = outlet_id
        self.webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls) -> NetworkIntlProvider:
        return cls(
            api_key=settings.NETWORK_INTL_API_KEY,
            outlet_id=settings.NETWORK_INTL_OUTLET_ID,
            webhook_secret=settings.NETWORK_INTL_WEBHOOK_SECRET,
            base_url=settings.NETWORK_INTL_API_URL,
            timeout=settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS,
        )

    def _default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/vnd.ni-payment.v2+json",
            "Accept": "application/vnd.ni-payment.v2+json",
        }

    def _orders_path(self, reference: str | None = None) -> str:
        path = f"/transactions/outlets/{self.outlet_id}/orders"
        return f"{path}/{reference}" if reference else path

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_intent(self, params: CreateIntentParams) -> PaymentIntent:
        body: dict[str, Any] = {
            "action": "AUTH",
            "amount": {"currencyCode": params.currency.upper(), "value": params.amount},
            "merchantOrderReference": params.order_id,
            "merchantAttributes": {
                "redirectUrl": params.return_url or settings.PAYMENT_DEFAULT_RETURN_URL,
                "skipConfirmationPage": True,
            },
        }
        if params.customer and params.customer.email:
            body["emailAddress"] = params.customer.email

        data = self._request(
            "POST",
            self._orders_path(),
            operation="create_intent",
            json=body,
            order_id=params.order_id,
        )
        payment_url = ((data.get("_links") or {}).get("payment") or {}).get("href")
        state = self._order_state(data)
        status = ORDER_STATE_MAP.get(state, IntentStatus.PENDING)
        if status == IntentStatus.PENDING and payment_url:
            status = IntentStatus.REQUIRES_ACTION
        return PaymentIntent(
            id=data["reference"],
            status=status,
            amount=data["amount"]["value"],
            currency=data["amount"]["currencyCode"],
            requires_action=payment_url is not None,
            action_url=payment_url,
            client_handle=payment_url,
            provider_status=state,
        )

    def capture(self, intent_id: str, amount: int | None = None) -> CaptureResult:
        body: dict[str, Any] = {}
        if amount is not None:
            body["amount"] = {"value": amount}
        data = self._request(
            "POST",
            f"{self._orders_path(intent_id)}/captures",
            operation="capture",
            json=body,
            intent_id=intent_id,
        )
        state = self._order_state(data)
        status = ORDER_STATE_MAP.get(state, IntentStatus.PENDING)
        success = status == IntentStatus.SUCCEEDED
        captured = (data.get("amount") or {}).get("value", amount or 0)
        return CaptureResult(
            success=success,
            amount=captured,
            status=status,
            error=None if success else f"Order state after capture: {state}",
        )

    def refund(self, intent_id: str, amount: int, reason: str | None = None) -> RefundResult:
        data = self._request(
            "POST",
            f"{self._orders_path(intent_id)}/refunds",
            operation="refund",
            json={"amount": {"value": amount}, "reason": reason or ""},
            intent_id=intent_id,
            amount=amount,
        )
        state = data.get("state", "")
        success = state not in ("FAILED", "DECLINED")
        return RefundResult(
            success=success,
            refund_id=data.get("reference"),
            amount=(data.get("amount") or {}).get("value", amount),
            status=ProviderRefundStatus.SUCCEEDED if success else ProviderRefundStatus.FAILED,
            error=None if success else f"Refund state: {state}",
        )

    def get_status(self, intent_id: str) -> ProviderPaymentStatus:
        data = self._request(
            "GET", self._orders_path(intent_id), operation="get_status", intent_id=intent_id
        )
        state = self._order_state(data)
        status = ORDER_STATE_MAP.get(state, IntentStatus.PENDING)
        amount = data["amount"]["value"]
        return ProviderPaymentStatus(
            id=data["reference"],
            status=status,
            amount=amount,
            currency=data["amount"]["currencyCode"],
            captured_amount=amount if status == IntentStatus.SUCCEEDED else 0,
            refunded_amount=(data.get("refundedAmount") or {}).get("value", 0),
        )

    def cancel(self, intent_id: str) -> CancelResult:
        data = self._request(
            "PUT",
            f"{self._orders_path(intent_id)}/cancel",
            operation="cancel",
            json={},
            intent_id=intent_id,
        )
        status = ORDER_STATE_MAP.get(self._order_state(data), IntentStatus.PENDING)
        return CancelResult(success=status == IntentStatus.CANCELLED, status=status)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        return verify_hmac_sha256(self.webhook_secret, payload, signature or "")

    def parse_event(self, payload: bytes) -> ProviderEvent:
        data = load_json_payload(payload)
        order = data.get("order") or {}
        event_name = data.get("eventName") or ""

        created_at = datetime.now(tz=timezone.utc)
        if data.get("eventTime"):
            created_at = datetime.fromisoformat(data["eventTime"].replace("Z", "+00:00"))

        return ProviderEvent(
            id=data.get("eventId") or data.get("_id") or f"{event_name}:{order.get('reference', '')}",
            type=event_name,
            intent_id=order.get("reference"),
            created_at=created_at,
            amount=(order.get("amount") or {}).get("value"),
            refunded_amount=(order.get("refundedAmount") or {}).get("value"),
            failure_message=data.get("message"),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _order_state(data: dict[str, Any]) -> str:
        payments = (data.get("_embedded") or {}).get("payment") or []
        if payments:
            return payments[0].get("state", "")
        return data.get("state", "")

    def _error_details(self, body: dict[str, Any]) -> tuple[str | None, str | None]:
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            first = errors[0]
            return first.get("errorCode"), first.get("message")
        return super()._error_details(body)
