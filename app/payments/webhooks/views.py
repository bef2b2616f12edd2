"""
Gateway callback endpoint.

The view:
1. Verifies the x-signature header
2. Records the callback verbatim as a GatewayEvent
3. Queues it for async processing
4. Returns 200

Processing errors never change the response: once the callback is
recorded it is acknowledged, and the Celery task retries or records the
problem for manual reconciliation. Answering with an error would only make
the gateway retry the same notification.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_callback

    urlpatterns = [
        path("webhooks/gateway/", gateway_callback, name="gateway_callback"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import GatewayAdapter
from payments.exceptions import InvalidSignatureError
from payments.models import GatewayEvent
from payments.state_machines import GatewayEventSource
from payments.webhooks.handlers import CALLBACK_EVENT_PREFIX, callback_type_of

logger = logging.getLogger(__name__)


def _data_id(request: HttpRequest, payload: dict) -> str:
    data = payload.get("data")
    if isinstance(data, dict) and data.get("id"):
        body_id = data["id"]
    else:
        body_id = None
    return str(request.GET.get("data.id") or body_id or request.GET.get("id") or "")


@csrf_exempt
@require_POST
def gateway_callback(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue gateway callbacks.

    Returns:
        HttpResponse with status:
        - 200: Callback recorded (whatever happens next)
        - 400: Body is not a JSON object
        - 401: Signature verification failed
    """
    try:
        payload = json.loads(request.body or b"{}")
    except ValueError:
        logger.warning("Gateway callback with invalid JSON body")
        return HttpResponse("Invalid payload", status=400)
    if not isinstance(payload, dict):
        logger.warning("Gateway callback body is not an object")
        return HttpResponse("Invalid payload", status=400)

    data_id = _data_id(request, payload)
    try:
        GatewayAdapter.verify_callback_signature(
            request.headers.get("x-signature"),
            request.headers.get("x-request-id"),
            data_id,
        )
    except InvalidSignatureError as e:
        logger.warning(
            "Gateway callback signature verification failed",
            extra={"error": e.message, "provider_charge_id": data_id},
        )
        return HttpResponse("Invalid signature", status=401)

    callback_type = callback_type_of(payload, request.GET)
    event = GatewayEvent.record(
        source=GatewayEventSource.CALLBACK,
        event_type=f"{CALLBACK_EVENT_PREFIX}{callback_type or 'unknown'}",
        payload=payload,
        provider_charge_id=data_id,
    )
    logger.info(
        "Gateway callback recorded",
        extra={
            "gateway_event_id": str(event.id),
            "callback_type": callback_type,
            "provider_charge_id": data_id,
        },
    )

    try:
        from payments.tasks import process_gateway_callback

        process_gateway_callback.delay(str(event.id))
    except Exception:
        # Still acknowledged: the event is recorded and can be replayed.
        logger.error(
            "Failed to queue gateway callback",
            extra={"gateway_event_id": str(event.id)},
            exc_info=True,
        )

    return HttpResponse("Accepted", status=200)
