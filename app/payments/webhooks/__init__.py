"""
Webhook handling for payment provider events.

This module provides the reconciler that applies provider notifications to
the ledger, and the HTTP endpoint that receives them.

Usage:
    # In urls.py
    from payments.webhooks.views import provider_webhook

    urlpatterns = [
        path("webhooks/<str:provider>/", provider_webhook, name="provider_webhook"),
    ]
"""

from payments.webhooks.reconciler import (
    DISPATCH_TABLES,
    WebhookAction,
    WebhookReconciler,
)

__all__ = [
    "DISPATCH_TABLES",
    "WebhookAction",
    "WebhookReconciler",
]
