"""
Inbound gateway callbacks.

Callbacks are verified, recorded verbatim as GatewayEvents and processed
asynchronously by payments.tasks.process_gateway_callback.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_callback

    urlpatterns = [
        path("webhooks/gateway/", gateway_callback, name="gateway_callback"),
    ]
"""

from payments.webhooks.handlers import dispatch_callback, register_handler, resolve_payment
from payments.webhooks.views import gateway_callback

__all__ = [
    "dispatch_callback",
    "gateway_callback",
    "register_handler",
    "resolve_payment",
]
