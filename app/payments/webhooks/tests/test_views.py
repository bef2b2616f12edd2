"""
Tests for the gateway callback endpoint.
"""

import hashlib
import hmac
import json

import pytest
from django.urls import reverse

from payments.models import GatewayEvent
from payments.state_machines import GatewayEventSource


def signed(data_id, request_id="req-1", ts="1704908010", secret="test-webhook-secret"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {"HTTP_X_SIGNATURE": f"ts={ts},v1={digest}", "HTTP_X_REQUEST_ID": request_id}


@pytest.fixture
def queued(mocker):
    return mocker.patch("payments.tasks.process_gateway_callback.delay")


@pytest.fixture
def post_callback(client):
    url = reverse("payments:gateway_callback")

    def post(body, query="", headers=None):
        data = body if isinstance(body, str) else json.dumps(body)
        return client.post(url + query, data=data, content_type="application/json", **(headers or {}))

    return post


@pytest.mark.django_db
class TestGatewayCallback:
    def test_records_and_queues(self, post_callback, queued):
        body = {"action": "payment.updated", "type": "payment", "data": {"id": "555"}}

        response = post_callback(body, headers=signed("555"))

        assert response.status_code == 200
        assert response.content == b"Accepted"
        event = GatewayEvent.objects.get()
        assert event.source == GatewayEventSource.CALLBACK
        assert event.event_type == "callback.payment"
        assert event.provider_charge_id == "555"
        assert event.payload == body
        queued.assert_called_once_with(str(event.id))

    def test_query_data_id_takes_precedence(self, post_callback, queued):
        response = post_callback(
            {"type": "payment", "data": {"id": "body-id"}},
            query="?data.id=777&type=payment",
            headers=signed("777"),
        )

        assert response.status_code == 200
        assert GatewayEvent.objects.get().provider_charge_id == "777"

    def test_legacy_topic_query(self, post_callback, queued):
        response = post_callback({}, query="?id=888&topic=merchant_order", headers=signed("888"))

        assert response.status_code == 200
        event = GatewayEvent.objects.get()
        assert event.event_type == "callback.merchant_order"
        assert event.provider_charge_id == "888"

    def test_untyped_callback(self, post_callback, queued):
        post_callback({"data": {"id": "1"}}, headers=signed("1"))

        assert GatewayEvent.objects.get().event_type == "callback.unknown"

    def test_bad_signature(self, post_callback, queued):
        response = post_callback(
            {"type": "payment", "data": {"id": "555"}},
            headers=signed("555", secret="wrong"),
        )

        assert response.status_code == 401
        assert not GatewayEvent.objects.exists()
        queued.assert_not_called()

    def test_missing_signature(self, post_callback, queued):
        response = post_callback({"type": "payment", "data": {"id": "555"}})

        assert response.status_code == 401

    def test_invalid_json(self, post_callback, queued):
        response = post_callback("{not json", headers=signed("1"))

        assert response.status_code == 400
        assert not GatewayEvent.objects.exists()

    def test_non_object_body(self, post_callback, queued):
        response = post_callback([1, 2], headers=signed(""))

        assert response.status_code == 400

    def test_queue_failure_still_acknowledged(self, post_callback, queued):
        queued.side_effect = ConnectionError("broker down")

        response = post_callback({"type": "payment", "data": {"id": "9"}}, headers=signed("9"))

        assert response.status_code == 200
        assert GatewayEvent.objects.count() == 1

    def test_get_not_allowed(self, client):
        response = client.get(reverse("payments:gateway_callback"))

        assert response.status_code == 405
