"""Shared fixtures."""

from datetime import datetime
from unittest.mock import patch

import pytest

from vysion_print.models import PrinterEndpoint, ServerState
from vysion_print.printer import PrinterService
from vysion_print.settings import PrinterSettings
from vysion_print.transport import DeliveryResult

NOW = datetime(2024, 5, 17, 18, 30)

FRIET_ORDER = {
    "orderNumber": 12,
    "orderType": "TAKEAWAY",
    "items": [{"name": "Friet", "quantity": 2, "totalPrice": 6.00}],
    "subtotal": 6.00,
    "tax": 0.50,
    "total": 6.50,
    "paymentMethod": "CASH",
}


class FakeDeliver:
    """Stands in for transport.deliver and records every call."""

    def __init__(self, *results: bool):
        self.results = list(results)
        self.calls = []

    def __call__(self, data, endpoint, timeout):
        self.calls.append((data, endpoint, timeout))
        success = self.results.pop(0) if self.results else True
        return DeliveryResult(success, None if success else "Connection refused")


@pytest.fixture
def endpoint():
    return PrinterEndpoint("192.168.1.50", 9100)


@pytest.fixture
def settings(endpoint):
    return PrinterSettings(endpoint=endpoint)


@pytest.fixture
def state():
    return ServerState()


@pytest.fixture
def fake_deliver():
    return FakeDeliver()


@pytest.fixture
def service(settings, state, fake_deliver):
    return PrinterService(settings, state, deliver=fake_deliver)


@pytest.fixture
def no_sleep():
    with patch("vysion_print.printer.time.sleep") as sleep:
        yield sleep
