"""
Tests for the provider webhook endpoint.
"""

import json
from unittest.mock import patch

import pytest
from django.urls import reverse

from payments.adapters.base import hmac_sha256_hex
from payments.models import Payment, WebhookEvent
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.tests.factories import PaymentFactory, PaymentSplitFactory
from payments.tests.fakes import signed_body

YOOKASSA_SECRET = "yk_webhook_secret"


def webhook_url(provider):
    return reverse("payments:provider_webhook", kwargs={"provider": provider})


@pytest.mark.django_db
class TestProviderWebhookWithFakes:
    def test_processed(self, client, default_orchestrator, authorized_payment):
        body, signature = signed_body(
            {"id": "evt_1", "type": "charge.captured", "intent_id": "fake_pi_1", "amount": 3799}
        )

        response = client.post(
            webhook_url("stripe"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature,
        )

        assert response.status_code == 200
        assert response.content == b"Processed"
        assert Payment.objects.get(pk=authorized_payment.pk).status == PaymentStatus.CAPTURED

    def test_bad_signature_returns_400(self, client, default_orchestrator):
        body, _ = signed_body({"id": "evt_1", "type": "charge.captured"})

        response = client.post(
            webhook_url("stripe"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="bogus",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_WEBHOOK_SIGNATURE"
        assert WebhookEvent.objects.count() == 0

    def test_unknown_provider_returns_404(self, client, default_orchestrator):
        response = client.post(webhook_url("paypal"), data=b"{}", content_type="application/json")

        assert response.status_code == 404
        assert response.json()["error_code"] == "UNKNOWN_PROVIDER"

    def test_malformed_body_returns_400(self, client, default_orchestrator):
        body = b"not json"
        signature = hmac_sha256_hex("whsec_fake", body)

        response = client.post(
            webhook_url("stripe"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature,
        )

        assert response.status_code == 400

    def test_processing_failure_still_acknowledged(self, client, default_orchestrator, authorized_payment):
        body, signature = signed_body(
            {"id": "evt_1", "type": "charge.captured", "intent_id": "fake_pi_1"}
        )

        with patch.object(
            default_orchestrator.store, "sync_split_status", side_effect=RuntimeError("db down")
        ):
            response = client.post(
                webhook_url("stripe"),
                data=body,
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE=signature,
            )

        assert response.status_code == 200
        assert response.content == b"Accepted"
        assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED

    def test_ignored_event_accepted(self, client, default_orchestrator):
        body, signature = signed_body({"id": "evt_1", "type": "customer.created"})

        response = client.post(
            webhook_url("stripe"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature,
        )

        assert response.status_code == 200
        assert response.content == b"Processed"

    def test_get_not_allowed(self, client):
        assert client.get(webhook_url("stripe")).status_code == 405


@pytest.mark.django_db
class TestYooKassaWebhook:
    """End to end through the real YooKassa adapter's signature and parser."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, settings):
        settings.YOOKASSA_WEBHOOK_SECRET = YOOKASSA_SECRET

    def notification(self, payment_id):
        return json.dumps(
            {
                "type": "notification",
                "event": "payment.waiting_for_capture",
                "object": {
                    "id": payment_id,
                    "status": "waiting_for_capture",
                    "amount": {"value": "37.99", "currency": "RUB"},
                },
            }
        ).encode()

    def test_signed_notification_authorizes_payment(self, client):
        payment = PaymentFactory(provider="yookassa", provider_payment_id="2d5a1c3e-000f-5000-9000-1b2c3d4e5f60", currency="RUB")
        PaymentSplitFactory(payment=payment)
        body = self.notification(payment.provider_payment_id)

        response = client.post(
            webhook_url("yookassa"),
            data=body,
            content_type="application/json",
            HTTP_AUTHORIZATION=f"HMAC-SHA256 {hmac_sha256_hex(YOOKASSA_SECRET, body)}",
        )

        assert response.status_code == 200
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.AUTHORIZED
        assert payment.authorized_amount == 3799
        event = WebhookEvent.objects.get()
        assert event.provider_event_id == f"payment.waiting_for_capture:{payment.provider_payment_id}"

    def test_unsigned_notification_rejected(self, client):
        response = client.post(
            webhook_url("yookassa"),
            data=self.notification("2d5a1c3e-000f-5000-9000-1b2c3d4e5f60"),
            content_type="application/json",
        )

        assert response.status_code == 400
