"""
Webhook endpoint view for payment providers.

One endpoint serves every gateway: ``/api/v1/payments/webhooks/<provider>/``.
The view:
1. Rejects unknown providers (404) and bad signatures (400)
2. Records the WebhookEvent (idempotent on provider + event id)
3. Applies the event synchronously through the WebhookReconciler
4. Returns 200 once the event is recorded, even if processing failed;
   failed events are picked up by the retry_failed_webhooks task

Usage:
    # In urls.py
    from payments.webhooks.views import provider_webhook

    urlpatterns = [
        path("webhooks/<str:provider>/", provider_webhook, name="provider_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import (
    PaymentValidationError,
    UnknownProviderError,
    WebhookSignatureError,
)
from payments.state_machines import ProviderName
from payments.webhooks.reconciler import WebhookReconciler

logger = logging.getLogger(__name__)

# Header carrying each provider's signature
SIGNATURE_HEADERS: dict[str, str] = {
    ProviderName.STRIPE: "Stripe-Signature",
    ProviderName.YOOKASSA: "Authorization",
    ProviderName.NETWORK_INTL: "X-Signature",
}


@csrf_exempt
@require_POST
def provider_webhook(request: HttpRequest, provider: str) -> HttpResponse:
    """
    Receive and apply a provider webhook.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new, duplicate, or recorded but failed)
        - 400: Invalid signature or payload
        - 404: Unknown provider
    """
    signature = request.headers.get(SIGNATURE_HEADERS.get(provider, ""), "")
    reconciler = WebhookReconciler.default()

    try:
        webhook_event, event = reconciler.receive(provider, request.body, signature)
    except UnknownProviderError as e:
        logger.warning("Webhook for unknown provider", extra={"provider": provider})
        return JsonResponse(e.to_dict(), status=e.http_status)
    except (WebhookSignatureError, PaymentValidationError) as e:
        return JsonResponse(e.to_dict(), status=400)

    try:
        webhook_event = reconciler.process(webhook_event, event)
    except Exception:
        # Already recorded as FAILED with the error; retried offline.
        return HttpResponse("Accepted", status=200)

    if webhook_event.is_processed:
        return HttpResponse("Processed", status=200)
    return HttpResponse("Accepted", status=200)
