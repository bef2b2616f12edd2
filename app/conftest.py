"""
Project-wide pytest configuration.

Settings are adjusted for tests here; shared payments fixtures live in
payments/conftest.py.
"""

import pytest


def pytest_configure():
    """Adjust settings once Django is configured."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # The test client speaks plain HTTP
    settings.SECURE_SSL_REDIRECT = False

    # Tests never reach the real gateway or rate provider
    settings.GATEWAY_API_BASE_URL = "https://gateway.test"
    settings.GATEWAY_ACCESS_TOKEN = "TEST-access-token"
    settings.GATEWAY_WEBHOOK_SECRET = "test-webhook-secret"
    settings.GATEWAY_WEBHOOK_ALLOW_UNSIGNED = False
    settings.FX_RATE_API_URL = "https://rates.test/simple/price"
    settings.FX_FIXED_RATES = {"USD:USDT": "1"}
    settings.FX_FALLBACK_POLICY = "reject"
    settings.FX_FALLBACK_RATES = {}
    settings.STORAGES = {
        **settings.STORAGES,
        "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
    }


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full checkout journeys)
    - test_views.py, test_tasks.py, test_handlers.py, etc. → integration
    - test_models.py, test_guards.py, test_locks.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_confirmation_engine.py",
        "test_direct_charge.py",
        "test_preference_issuer.py",
        "test_dispatcher.py",
        "test_expiration_sweeper.py",
        "test_webhook_redelivery.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_guards.py",
        "test_locks.py",
        "test_settlement.py",
        "test_gateway_adapter.py",
        "test_fx_rates.py",
        "test_status_details.py",
        "test_exceptions.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
