"""
Tests for the gateway adapter.

Tests cover:
- Request shape for preferences, charges and lookups
- Error translation (network, 429/5xx, 4xx)
- Callback signature verification
"""

import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from payments.adapters import ChargeRequest, ChargeResult, GatewayAdapter, PayerInfo
from payments.exceptions import GatewayRejected, GatewayUnavailable, InvalidSignatureError
from payments.tests.factories import OrderFactory, PaymentFactory


def sign(data_id, request_id="req-1", ts="1704908010", secret="test-webhook-secret"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    return f"ts={ts},v1={hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()}"


def card_request(**overrides):
    params = {
        "token": "card-token",
        "payment_method_id": "visa",
        "payer": PayerInfo(email="payer@example.com", identification_type="DNI", identification_number="123"),
        "idempotency_key": "charge-key-1",
    }
    params.update(overrides)
    return ChargeRequest(**params)


# =============================================================================
# Data Types
# =============================================================================


class TestChargeRequest:
    def test_requires_token(self):
        with pytest.raises(ValueError, match="token"):
            card_request(token="")

    def test_requires_idempotency_key(self):
        with pytest.raises(ValueError, match="idempotency_key"):
            card_request(idempotency_key="")

    def test_rejects_zero_installments(self):
        with pytest.raises(ValueError, match="installments"):
            card_request(installments=0)


class TestPayerInfo:
    def test_identification_only_when_complete(self):
        assert PayerInfo(email="a@b.co", identification_type="DNI").to_payload() == {"email": "a@b.co"}

    def test_full_payload(self):
        payer = PayerInfo(email="a@b.co", identification_type="DNI", identification_number="1")

        assert payer.to_payload() == {"email": "a@b.co", "identification": {"type": "DNI", "number": "1"}}


class TestChargeResult:
    def test_from_response(self):
        charge = ChargeResult.from_response(
            {
                "id": 987,
                "status": "approved",
                "status_detail": "accredited",
                "transaction_amount": 1500.5,
                "currency_id": "ARS",
                "external_reference": "ref",
            }
        )

        assert charge.provider_charge_id == "987"
        assert charge.amount == Decimal("1500.5")
        assert charge.is_approved
        assert not charge.is_in_flight

    def test_missing_fields_default(self):
        charge = ChargeResult.from_response({"id": 1, "status": "in_process", "status_detail": None})

        assert charge.status_detail == ""
        assert charge.amount == Decimal("0")
        assert charge.is_in_flight


# =============================================================================
# Core Operations
# =============================================================================


@pytest.mark.django_db
class TestCreatePreference:
    def test_posts_preference_with_idempotency_key(self, gateway_transport):
        order = OrderFactory()
        payment = PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount)
        gateway_transport.reply(201, json={"id": "pref-9", "init_point": "https://pay/9", "sandbox_init_point": ""})

        result = GatewayAdapter.create_preference(payment, title="Sneakers")

        request = gateway_transport.requests[0]
        body = json.loads(request.content)
        assert request.method == "POST"
        assert request.url == "https://gateway.test/checkout/preferences"
        assert request.headers["Authorization"] == "Bearer TEST-access-token"
        assert request.headers["X-Idempotency-Key"] == f"preference:{payment.idempotency_key}"
        assert body["external_reference"] == str(order.id)
        assert body["items"][0]["title"] == "Sneakers"
        assert body["items"][0]["unit_price"] == float(payment.amount)
        assert body["metadata"]["payment_id"] == str(payment.id)
        assert result.preference_id == "pref-9"
        assert result.redirect_url == "https://pay/9"
        assert result.reused is False

    def test_returns_stored_preference_without_calling_gateway(self, gateway_transport):
        payment = PaymentFactory(
            gateway_preference_id="pref-old",
            gateway_redirect_url="https://pay/old",
        )

        result = GatewayAdapter.create_preference(payment)

        assert gateway_transport.requests == []
        assert result.preference_id == "pref-old"
        assert result.reused is True


@pytest.mark.django_db
class TestSubmitCharge:
    def test_posts_charge(self, gateway_transport):
        order = OrderFactory()
        payment = PaymentFactory(merchant=order.merchant, order=order, amount=order.total_amount)
        gateway_transport.reply(201, json={"id": 42, "status": "approved", "status_detail": "accredited"})

        charge = GatewayAdapter.submit_charge(order, payment, card_request(issuer_id="310"))

        request = gateway_transport.requests[0]
        body = json.loads(request.content)
        assert request.url.path == "/v1/payments"
        assert request.headers["X-Idempotency-Key"] == "charge-key-1"
        assert body["token"] == "card-token"
        assert body["issuer_id"] == "310"
        assert body["external_reference"] == str(order.id)
        assert body["payer"]["identification"] == {"type": "DNI", "number": "123"}
        assert charge.provider_charge_id == "42"

    def test_rejected_card_is_a_result(self, gateway_transport):
        payment = PaymentFactory()
        gateway_transport.reply(201, json={"id": 43, "status": "rejected", "status_detail": "cc_rejected_high_risk"})

        charge = GatewayAdapter.submit_charge(None, payment, card_request())

        assert charge.status == "rejected"
        assert json.loads(gateway_transport.requests[0].content)["external_reference"] == str(payment.id)


class TestFetchCharge:
    def test_gets_charge(self, gateway_transport):
        gateway_transport.reply(200, json={"id": 77, "status": "pending", "status_detail": "pending_contingency"})

        charge = GatewayAdapter.fetch_charge("77")

        assert gateway_transport.requests[0].method == "GET"
        assert gateway_transport.requests[0].url.path == "/v1/payments/77"
        assert "X-Idempotency-Key" not in gateway_transport.requests[0].headers
        assert charge.status_detail == "pending_contingency"


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    @pytest.mark.parametrize("status_code", [429, 500, 502, 503])
    def test_retryable_statuses(self, gateway_transport, status_code):
        gateway_transport.reply(status_code, json={"message": "busy"})

        with pytest.raises(GatewayUnavailable) as exc_info:
            GatewayAdapter.fetch_charge("1")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.is_retryable

    def test_client_error_carries_provider_body(self, gateway_transport):
        gateway_transport.reply(404, json={"message": "Payment not found", "status": 404})

        with pytest.raises(GatewayRejected) as exc_info:
            GatewayAdapter.fetch_charge("1")

        assert exc_info.value.status_code == 404
        assert exc_info.value.provider_error == {"message": "Payment not found", "status": 404}

    def test_non_json_error_body(self, gateway_transport):
        gateway_transport.reply(400, text="bad request")

        with pytest.raises(GatewayRejected) as exc_info:
            GatewayAdapter.fetch_charge("1")

        assert exc_info.value.provider_error == {"raw": "bad request"}

    def test_timeout(self, gateway_transport):
        gateway_transport.fail(httpx.ReadTimeout("slow"))

        with pytest.raises(GatewayUnavailable, match="timed out"):
            GatewayAdapter.fetch_charge("1")

    def test_connection_error(self, gateway_transport):
        gateway_transport.fail(httpx.ConnectError("refused"))

        with pytest.raises(GatewayUnavailable, match="unreachable"):
            GatewayAdapter.fetch_charge("1")

    def test_unreadable_success_body(self, gateway_transport):
        gateway_transport.reply(200, json=["not", "an", "object"])

        with pytest.raises(GatewayUnavailable, match="unreadable"):
            GatewayAdapter.fetch_charge("1")


# =============================================================================
# Callback Verification
# =============================================================================


class TestVerifyCallbackSignature:
    def test_valid_signature(self):
        GatewayAdapter.verify_callback_signature(sign("123"), "req-1", "123")

    def test_tolerates_spaces(self):
        header = sign("123").replace(",", ", ")

        GatewayAdapter.verify_callback_signature(header, "req-1", "123")

    def test_wrong_data_id(self):
        with pytest.raises(InvalidSignatureError, match="mismatch"):
            GatewayAdapter.verify_callback_signature(sign("123"), "req-1", "124")

    def test_wrong_secret(self):
        with pytest.raises(InvalidSignatureError):
            GatewayAdapter.verify_callback_signature(sign("123", secret="other"), "req-1", "123")

    @pytest.mark.parametrize("header,request_id", [(None, "req-1"), ("ts=1,v1=abc", None)])
    def test_missing_headers(self, header, request_id):
        with pytest.raises(InvalidSignatureError, match="Missing"):
            GatewayAdapter.verify_callback_signature(header, request_id, "123")

    def test_malformed_header(self):
        with pytest.raises(InvalidSignatureError, match="Malformed"):
            GatewayAdapter.verify_callback_signature("garbage", "req-1", "123")

    def test_no_secret_rejects_by_default(self, settings):
        settings.GATEWAY_WEBHOOK_SECRET = ""

        with pytest.raises(InvalidSignatureError, match="not configured"):
            GatewayAdapter.verify_callback_signature(sign("123"), "req-1", "123")

    def test_no_secret_allowed_when_configured(self, settings):
        settings.GATEWAY_WEBHOOK_SECRET = ""
        settings.GATEWAY_WEBHOOK_ALLOW_UNSIGNED = True

        GatewayAdapter.verify_callback_signature(None, None, "123")
