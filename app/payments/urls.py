"""
URL configuration for the payments app.

Routes:
    - POST /<payment_id>/preference/ - Issue hosted checkout preference
    - POST /orders/<order_id>/charge/ - Charge an order with a card token
    - POST /webhooks/gateway/ - Gateway callback endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import OrderChargeView, PaymentPreferenceView
from payments.webhooks.views import gateway_callback

app_name = "payments"

urlpatterns = [
    # Checkout
    path("<uuid:payment_id>/preference/", PaymentPreferenceView.as_view(), name="payment_preference"),
    path("orders/<uuid:order_id>/charge/", OrderChargeView.as_view(), name="order_charge"),
    # Webhook endpoints
    path("webhooks/gateway/", gateway_callback, name="gateway_callback"),
]
