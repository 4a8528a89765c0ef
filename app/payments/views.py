"""
Payment API views.

This module provides REST endpoints for:
- Authorizing an order's payment
- Retrieving a payment, or the latest payment of an order
- Capturing, refunding and cancelling a payment

Service errors (core.exceptions.BaseApplicationError) are returned as
``to_dict()`` bodies with the error's HTTP status. Provider errors carry the
payment's ledger status in ``details.payment_status``.

Related files:
    - services/payment_orchestrator.py: Business logic
    - serializers.py: Request/response serializers
    - webhooks/views.py: Provider webhook endpoint
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from payments.adapters import CustomerInfo
from payments.exceptions import PaymentNotFoundError
from payments.serializers import (
    AuthorizePaymentSerializer,
    CapturePaymentSerializer,
    PaymentSerializer,
    RefundPaymentSerializer,
)
from payments.services import PaymentOrchestrator

logger = logging.getLogger(__name__)


ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation error"),
    401: OpenApiResponse(description="Authentication required"),
    404: OpenApiResponse(description="Order or payment not found"),
    409: OpenApiResponse(description="Payment is in the wrong state"),
    502: OpenApiResponse(description="Payment provider error"),
}


class PaymentAPIView(APIView):
    """
    Base view wiring the orchestrator and error translation.

    Subclasses call ``self.orchestrator`` and let BaseApplicationError
    propagate; handle_exception turns it into a JSON response.
    """

    permission_classes = [IsAuthenticated]

    def get_orchestrator(self) -> PaymentOrchestrator:
        return PaymentOrchestrator.default()

    @property
    def orchestrator(self) -> PaymentOrchestrator:
        if not hasattr(self, "_orchestrator"):
            self._orchestrator = self.get_orchestrator()
        return self._orchestrator

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            if exc.http_status >= 500:
                logger.error(
                    "Payment API request failed",
                    extra={"error_code": exc.error_code, "path": self.request.path},
                )
            return Response(exc.to_dict(), status=exc.http_status)
        return super().handle_exception(exc)

    @staticmethod
    def payment_response(payment, status_code: int = status.HTTP_200_OK) -> Response:
        return Response(PaymentSerializer(payment).data, status=status_code)


class AuthorizePaymentView(PaymentAPIView):
    """
    POST /api/v1/payments/authorize/

    Response:
        201 Created: New payment authorized (or awaiting customer action)
        200 OK: Idempotency key seen before; existing payment returned
    """

    @extend_schema(
        operation_id="authorize_payment",
        summary="Authorize order payment",
        description=(
            "Compute merchant splits for the order and reserve its total with the "
            "gateway for the order currency. Repeating the request with the same "
            "idempotency key returns the original payment."
        ),
        request=AuthorizePaymentSerializer,
        responses={
            201: OpenApiResponse(response=PaymentSerializer, description="Payment created"),
            200: OpenApiResponse(response=PaymentSerializer, description="Existing payment"),
            **ERROR_RESPONSES,
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = AuthorizePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = None
        if data.get("customer_email") or data.get("customer_phone"):
            customer = CustomerInfo(
                id=str(request.user.pk),
                email=data.get("customer_email"),
                phone=data.get("customer_phone"),
            )

        payment, created = self.orchestrator.authorize(
            data["order_id"],
            idempotency_key=data.get("idempotency_key"),
            customer=customer,
            return_url=data.get("return_url"),
        )
        return self.payment_response(
            payment, status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


class PaymentDetailView(PaymentAPIView):
    """GET /api/v1/payments/<payment_id>/"""

    @extend_schema(
        operation_id="get_payment",
        summary="Get payment",
        responses={200: PaymentSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Payments"],
    )
    def get(self, request, payment_id):
        return self.payment_response(self.orchestrator.get(payment_id))


class OrderPaymentView(PaymentAPIView):
    """GET /api/v1/payments/order/<order_id>/"""

    @extend_schema(
        operation_id="get_order_payment",
        summary="Get latest payment for an order",
        responses={200: PaymentSerializer, 404: ERROR_RESPONSES[404]},
        tags=["Payments"],
    )
    def get(self, request, order_id):
        payment = self.orchestrator.get_by_order(order_id)
        if payment is None:
            raise PaymentNotFoundError(
                f"No payment for order {order_id}",
                details={"order_id": str(order_id)},
            )
        return self.payment_response(payment)


class CapturePaymentView(PaymentAPIView):
    """POST /api/v1/payments/<payment_id>/capture/"""

    @extend_schema(
        operation_id="capture_payment",
        summary="Capture payment",
        description="Capture an authorized payment, fully or partially.",
        request=CapturePaymentSerializer,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Payments"],
    )
    def post(self, request, payment_id):
        serializer = CapturePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = self.orchestrator.capture(
            payment_id, amount=serializer.validated_data.get("amount")
        )
        return self.payment_response(payment)


class RefundPaymentView(PaymentAPIView):
    """POST /api/v1/payments/<payment_id>/refund/"""

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        description=(
            "Refund part or all of a captured payment. Merchant splits are "
            "reduced proportionally."
        ),
        request=RefundPaymentSerializer,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Payments"],
    )
    def post(self, request, payment_id):
        serializer = RefundPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment, _refund = self.orchestrator.refund(
            payment_id,
            data["amount"],
            data["reason"],
            line_item_id=data.get("line_item_id"),
            actor_id=request.user.pk,
        )
        payment.refresh_from_db()
        return self.payment_response(payment)


class CancelPaymentView(PaymentAPIView):
    """POST /api/v1/payments/<payment_id>/cancel/"""

    @extend_schema(
        operation_id="cancel_payment",
        summary="Cancel payment",
        description="Void a payment that has not been captured.",
        request=None,
        responses={200: PaymentSerializer, **ERROR_RESPONSES},
        tags=["Payments"],
    )
    def post(self, request, payment_id):
        return self.payment_response(self.orchestrator.cancel(payment_id))
