"""
URL configuration for the payments app.

Routes:
    - POST /authorize/ - Authorize an order's payment
    - GET /<payment_id>/ - Payment with splits and refunds
    - GET /order/<order_id>/ - Latest payment for an order
    - POST /<payment_id>/capture/ - Capture
    - POST /<payment_id>/refund/ - Refund
    - POST /<payment_id>/cancel/ - Cancel
    - POST /webhooks/<provider>/ - Provider webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    AuthorizePaymentView,
    CancelPaymentView,
    CapturePaymentView,
    OrderPaymentView,
    PaymentDetailView,
    RefundPaymentView,
)
from payments.webhooks.views import provider_webhook

app_name = "payments"

urlpatterns = [
    path("authorize/", AuthorizePaymentView.as_view(), name="authorize"),
    path("order/<uuid:order_id>/", OrderPaymentView.as_view(), name="order_payment"),
    path("webhooks/<str:provider>/", provider_webhook, name="provider_webhook"),
    path("<uuid:payment_id>/", PaymentDetailView.as_view(), name="detail"),
    path("<uuid:payment_id>/capture/", CapturePaymentView.as_view(), name="capture"),
    path("<uuid:payment_id>/refund/", RefundPaymentView.as_view(), name="refund"),
    path("<uuid:payment_id>/cancel/", CancelPaymentView.as_view(), name="cancel"),
]
