"""
DRF serializers for the payments API.

Provides:
- PreferenceRequestSerializer / PreferenceResponseSerializer: Hosted checkout
- DirectChargeRequestSerializer / DirectChargeResponseSerializer: Card charge
- ErrorResponseSerializer: Error body shared by all endpoints

Related files:
    - views.py: Payment API views
    - services/: PreferenceIssuer, DirectChargeHandler
"""

from __future__ import annotations

import uuid

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from payments.adapters import PayerInfo
from payments.services import DirectChargeRequest


class PreferenceRequestSerializer(serializers.Serializer):
    """Optional overrides for the checkout preference."""

    title = serializers.CharField(
        max_length=255,
        required=False,
        allow_blank=False,
        help_text="Item title shown on the checkout page (defaults to the merchant name)",
    )


class PreferenceResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    preference_id = serializers.CharField()
    redirect_url = serializers.CharField(allow_blank=True)
    sandbox_redirect_url = serializers.CharField(allow_blank=True)
    reused = serializers.BooleanField(help_text="True when the payment already had a preference")


class PayerIdentificationSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=20, help_text="Document type, e.g. DNI")
    number = serializers.CharField(max_length=50)


class PayerSerializer(serializers.Serializer):
    email = serializers.EmailField()
    identification = PayerIdentificationSerializer(required=False)


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Visa card",
            value={
                "token": "ff8080814c11e237014c1ff593b57b4d",
                "payment_method_id": "visa",
                "installments": 1,
                "payer": {
                    "email": "payer@example.com",
                    "identification": {"type": "DNI", "number": "12345678"},
                },
            },
            request_only=True,
        )
    ]
)
class DirectChargeRequestSerializer(serializers.Serializer):
    """
    Card token submission from the checkout client.

    Usage:
        serializer = DirectChargeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        charge_request = serializer.to_charge_request(order_id)
    """

    token = serializers.CharField(max_length=255, help_text="Card token from the gateway SDK")
    payment_method_id = serializers.CharField(max_length=50, help_text="Card brand, e.g. visa")
    installments = serializers.IntegerField(min_value=1, max_value=48, default=1)
    issuer_id = serializers.CharField(max_length=50, required=False, allow_null=True, allow_blank=True)
    payer = PayerSerializer()

    def to_charge_request(self, order_id: uuid.UUID) -> DirectChargeRequest:
        data = self.validated_data
        identification = data["payer"].get("identification") or {}
        return DirectChargeRequest(
            order_id=order_id,
            token=data["token"],
            payment_method_id=data["payment_method_id"],
            installments=data["installments"],
            issuer_id=data.get("issuer_id") or None,
            payer=PayerInfo(
                email=data["payer"]["email"],
                identification_type=identification.get("type"),
                identification_number=identification.get("number"),
            ),
        )


class DirectChargeResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    status = serializers.CharField()
    order_id = serializers.UUIDField()
    status_detail = serializers.CharField(allow_blank=True, required=False)
    provider_charge_id = serializers.CharField(allow_null=True, required=False)
    message = serializers.CharField(allow_blank=True, required=False)
    already_paid = serializers.BooleanField(default=False)


class ErrorResponseSerializer(serializers.Serializer):
    """Body of BaseApplicationError.to_dict()."""

    error = serializers.CharField()
    error_code = serializers.CharField()
    details = serializers.DictField(required=False)
