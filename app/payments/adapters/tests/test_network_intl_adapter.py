"""
Tests for NetworkIntlProvider.
"""

import json

import httpx
import pytest

from payments.adapters import CreateIntentParams, IntentStatus, NetworkIntlProvider
from payments.adapters.base import hmac_sha256_hex
from payments.exceptions import ProviderError

BASE_URL = "https://api-gateway.ni.test"
ORDERS = "/transactions/outlets/outlet_1/orders"


def make_provider(handler):
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return NetworkIntlProvider(
        api_key="ni_key",
        outlet_id="outlet_1",
        webhook_secret="ni_whsec",
        base_url=BASE_URL,
        client=client,
    )


def order_body(state="AUTHORISED", value=25000, **extra):
    return {
        "reference": "ord-ref-1",
        "amount": {"currencyCode": "AED", "value": value},
        "_embedded": {"payment": [{"state": state}]},
        **extra,
    }


def params():
    return CreateIntentParams(
        amount=25000,
        currency="AED",
        order_id="order-1",
        idempotency_key="payment_order-1_1",
        return_url="https://shop.test/return",
    )


class TestOperations:
    def test_create_intent_with_payment_page(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                201,
                json=order_body(
                    state="STARTED",
                    _links={"payment": {"href": "https://paypage.ni.test/?code=abc"}},
                ),
            )

        intent = make_provider(handler).create_intent(params())

        assert intent.id == "ord-ref-1"
        assert intent.status == IntentStatus.REQUIRES_ACTION
        assert intent.action_url == "https://paypage.ni.test/?code=abc"
        assert requests[0].url.path == ORDERS
        body = json.loads(requests[0].content)
        assert body["action"] == "AUTH"
        assert body["amount"] == {"currencyCode": "AED", "value": 25000}
        assert body["merchantOrderReference"] == "order-1"

    def test_capture(self):
        def handler(request):
            assert request.url.path == f"{ORDERS}/ord-ref-1/captures"
            return httpx.Response(200, json=order_body("CAPTURED"))

        result = make_provider(handler).capture("ord-ref-1", 25000)

        assert result.success is True
        assert result.amount == 25000

    def test_refund_declined(self):
        def handler(request):
            return httpx.Response(200, json={"reference": "rf-1", "state": "DECLINED", "amount": {"value": 100}})

        result = make_provider(handler).refund("ord-ref-1", 100)

        assert result.success is False
        assert result.error == "Refund state: DECLINED"

    def test_cancel_uses_put(self):
        def handler(request):
            assert request.method == "PUT"
            return httpx.Response(200, json=order_body("REVERSED"))

        assert make_provider(handler).cancel("ord-ref-1").success is True

    def test_get_status(self):
        def handler(request):
            return httpx.Response(
                200, json=order_body("PARTIALLY_REFUNDED", refundedAmount={"value": 5000})
            )

        status = make_provider(handler).get_status("ord-ref-1")

        assert status.status == IntentStatus.SUCCEEDED
        assert status.refunded_amount == 5000

    def test_error_body_translated(self):
        def handler(request):
            return httpx.Response(
                422,
                json={"errors": [{"errorCode": "invalidAmount", "message": "Amount exceeds limit"}]},
            )

        with pytest.raises(ProviderError) as exc_info:
            make_provider(handler).capture("ord-ref-1", 999999)

        assert exc_info.value.provider == "network_intl"
        assert exc_info.value.provider_code == "invalidAmount"
        assert exc_info.value.message == "Amount exceeds limit"

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ProviderError) as exc_info:
            make_provider(handler).get_status("ord-ref-1")

        assert exc_info.value.error_code == "PROVIDER_UNAVAILABLE"
        assert exc_info.value.is_retryable is True


class TestWebhooks:
    @pytest.fixture
    def provider(self):
        return NetworkIntlProvider(api_key="k", outlet_id="outlet_1", webhook_secret="ni_whsec")

    def test_signature(self, provider):
        body = b'{"eventName": "CAPTURED"}'

        assert provider.verify_signature(body, hmac_sha256_hex("ni_whsec", body)) is True
        assert provider.verify_signature(body, None) is False

    def test_parse_event(self, provider):
        body = json.dumps(
            {
                "eventId": "ev-1",
                "eventName": "CAPTURED",
                "eventTime": "2026-03-01T10:00:00Z",
                "order": {"reference": "ord-ref-1", "amount": {"value": 25000}},
            }
        ).encode()

        event = provider.parse_event(body)

        assert event.id == "ev-1"
        assert event.type == "CAPTURED"
        assert event.intent_id == "ord-ref-1"
        assert event.amount == 25000

    def test_event_id_falls_back_to_name_and_reference(self, provider):
        body = json.dumps({"eventName": "DECLINED", "order": {"reference": "ord-ref-1"}}).encode()

        assert provider.parse_event(body).id == "DECLINED:ord-ref-1"
