"""
Pytest fixtures for adapter tests.

Sections:
    - Gateway Transport Fixtures
    - Rate Source Fixtures
"""

import httpx
import pytest

from payments.adapters import FxRateProvider, GatewayAdapter


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps the requests it served and replies from a settable queue."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.replies: list = []
        super().__init__(self._handle)

    def reply(self, status_code=200, json=None, text=None):
        self.replies.append(httpx.Response(status_code, json=json, text=text))

    def fail(self, exc: Exception):
        self.replies.append(exc)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else httpx.Response(200, json={})
        if isinstance(reply, Exception):
            raise reply
        return reply


# =============================================================================
# Gateway Transport Fixtures
# =============================================================================


@pytest.fixture
def gateway_transport(mocker):
    """Transport installed on GatewayAdapter."""
    transport = RecordingTransport()
    mocker.patch.object(GatewayAdapter, "transport", transport)
    return transport


# =============================================================================
# Rate Source Fixtures
# =============================================================================


@pytest.fixture
def rate_transport(mocker):
    """Transport installed on FxRateProvider."""
    transport = RecordingTransport()
    mocker.patch.object(FxRateProvider, "transport", transport)
    return transport
