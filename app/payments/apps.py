"""
Payments app configuration.

This app provides the payment orchestration core:
- Authorization, capture, refund and cancellation through pluggable gateways
- Per-merchant fee splits and escrow dates
- Webhook reconciliation and a transactional outbox
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        from payments import signals  # noqa: F401
