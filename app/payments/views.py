"""
API views for the checkout flows.

Provides:
- PaymentPreferenceView: Issue the hosted checkout preference for a payment
- OrderChargeView: Charge an order with a tokenized card

Both endpoints are called by the public checkout page, so they carry no
session authentication; payment and order ids are unguessable UUIDs.

Error mapping:
    PaymentValidationError  → 400
    NotFoundError           → 404
    ExpiredPayment          → 200 {"success": false, "status": "expired"}
    ConflictError           → 409
    GatewayRejected         → 200 {"success": false, "message": ...}
    ExternalServiceError    → 503 (GatewayUnavailable)
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ConflictError, ExternalServiceError, NotFoundError
from payments.exceptions import ExpiredPayment, GatewayRejected, PaymentError
from payments.serializers import (
    DirectChargeRequestSerializer,
    DirectChargeResponseSerializer,
    ErrorResponseSerializer,
    PreferenceRequestSerializer,
    PreferenceResponseSerializer,
)
from payments.services import DirectChargeHandler, PreferenceIssuer
from payments.state_machines import PaymentStatus
from payments.status_details import GENERIC_FAILURE, describe_status_detail

logger = logging.getLogger(__name__)


def error_response(exc: Exception, **extra) -> Response:
    """Render a payments exception with its HTTP status."""
    if isinstance(exc, ExpiredPayment):
        return Response(
            {"success": False, "status": PaymentStatus.EXPIRED, "message": describe_status_detail("expired"), **extra},
            status=status.HTTP_200_OK,
        )
    if isinstance(exc, GatewayRejected):
        return Response(
            {"success": False, "status": "rejected", "message": str(GENERIC_FAILURE), **extra},
            status=status.HTTP_200_OK,
        )
    if isinstance(exc, ExternalServiceError):
        return Response(exc.to_dict(), status=status.HTTP_503_SERVICE_UNAVAILABLE)
    if isinstance(exc, NotFoundError):
        return Response(exc.to_dict(), status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ConflictError):
        return Response(exc.to_dict(), status=status.HTTP_409_CONFLICT)
    return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)


class PaymentPreferenceView(APIView):
    """
    Issue the gateway checkout preference for a payment.

    POST /api/v1/payments/{payment_id}/preference/
        Returns the preference id and the URL to redirect the payer to.
        Calling it again returns the same preference.

    Response:
        200 OK: Preference issued (or reused), or expired/rejected body
        400 Bad Request: Payment is no longer collectable
        404 Not Found: Unknown payment
        409 Conflict: Payment changed concurrently
        503 Service Unavailable: Gateway unreachable
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="issue_payment_preference",
        summary="Issue checkout preference",
        description=(
            "Create the hosted checkout preference for a payment, or return the "
            "one already issued. The payer is redirected to redirect_url."
        ),
        request=PreferenceRequestSerializer,
        responses={
            200: OpenApiResponse(response=PreferenceResponseSerializer, description="Preference issued"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Payment not collectable"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Payment not found"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Concurrent modification"),
            503: OpenApiResponse(response=ErrorResponseSerializer, description="Gateway unavailable"),
        },
        tags=["Payments - Checkout"],
    )
    def post(self, request, payment_id):
        serializer = PreferenceRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            preference = PreferenceIssuer.issue(payment_id, title=serializer.validated_data.get("title"))
        except (PaymentError, ConflictError) as e:
            logger.info(
                "Preference request refused",
                extra={"payment_id": str(payment_id), "error_code": e.error_code},
            )
            return error_response(e)

        output = PreferenceResponseSerializer(
            {
                "success": True,
                "preference_id": preference.preference_id,
                "redirect_url": preference.redirect_url,
                "sandbox_redirect_url": preference.sandbox_redirect_url,
                "reused": preference.reused,
            }
        )
        return Response(output.data, status=status.HTTP_200_OK)


class OrderChargeView(APIView):
    """
    Charge an order with a tokenized card.

    POST /api/v1/payments/orders/{order_id}/charge/
        Submits the card token to the gateway and confirms the payment
        synchronously. Declined cards return success=false with a
        translated reason; retrying the same submission is safe.

    Response:
        200 OK: Charge result (approved, in process, declined or expired)
        400 Bad Request: Invalid request body
        404 Not Found: Unknown order
        409 Conflict: Order changed concurrently
        503 Service Unavailable: Gateway unreachable, retry the same request
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="charge_order",
        summary="Charge order with card token",
        request=DirectChargeRequestSerializer,
        responses={
            200: OpenApiResponse(response=DirectChargeResponseSerializer, description="Charge result"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Validation error"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Concurrent modification"),
            503: OpenApiResponse(response=ErrorResponseSerializer, description="Gateway unavailable"),
        },
        tags=["Payments - Checkout"],
    )
    def post(self, request, order_id):
        serializer = DirectChargeRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = DirectChargeHandler.charge(serializer.to_charge_request(order_id))
        except (PaymentError, ConflictError) as e:
            logger.info(
                "Charge request refused",
                extra={"order_id": str(order_id), "error_code": e.error_code},
            )
            return error_response(e, order_id=str(order_id))

        output = DirectChargeResponseSerializer(
            {
                "success": result.success,
                "status": result.status,
                "order_id": result.order_id,
                "status_detail": result.status_detail,
                "provider_charge_id": result.provider_charge_id,
                "message": result.message,
                "already_paid": result.already_paid,
            }
        )
        return Response(output.data, status=status.HTTP_200_OK)
