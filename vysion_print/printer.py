"""Printer operations: receipts, test prints and the cash drawer."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from functools import wraps

from vysion_print import transport
from vysion_print.config import COPY_DELAY, PRINT_TIMEOUT, RECEIPT_COPIES
from vysion_print.exceptions import DeliveryError, NotConfiguredError, VysionPrintError
from vysion_print.models import BusinessProfile, Order, PrinterEndpoint, ServerState
from vysion_print.receipt import ReceiptLayout, encode_drawer, encode_receipt, encode_test_print, get_layout
from vysion_print.settings import PrinterSettings

logger = logging.getLogger(__name__)


def records_errors(func):
    """Decorator keeping the shared last-error message in step with each operation."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            result = func(self, *args, **kwargs)
        except VysionPrintError as e:
            self.state.record_error(str(e))
            raise
        self.state.clear_error()
        return result

    return wrapper


class PrinterService:
    """
    Encodes and delivers jobs to the configured printer.

    Every operation reads the endpoint once, so a printer change made while a
    job is running only affects later jobs.
    """

    def __init__(
        self,
        settings: PrinterSettings,
        state: ServerState | None = None,
        layout: ReceiptLayout | None = None,
        deliver=transport.deliver,
        copies: int = RECEIPT_COPIES,
        copy_delay: float = COPY_DELAY,
        timeout: float = PRINT_TIMEOUT,
    ):
        self.settings = settings
        self.state = state or ServerState()
        self.layout = layout or get_layout()
        self.copies = copies
        self.copy_delay = copy_delay
        self.timeout = timeout
        self._deliver = deliver

    @property
    def endpoint(self) -> PrinterEndpoint | None:
        return self.settings.endpoint

    def _require_endpoint(self) -> PrinterEndpoint:
        endpoint = self.settings.endpoint
        if endpoint is None:
            raise NotConfiguredError()
        return endpoint

    def _send(self, data: bytes, endpoint: PrinterEndpoint) -> None:
        result = self._deliver(data, endpoint, timeout=self.timeout)
        if not result.success:
            raise DeliveryError(result.error or f"Could not reach printer {endpoint}")

    @records_errors
    def print_receipt(self, order: Order, business: BusinessProfile | None = None, now: datetime | None = None) -> None:
        """
        Print the receipt once per copy, pausing between copies.

        The stream is encoded once and sent on a new connection per copy. If a
        copy fails, the remaining copies are not sent.

        Raises:
            NotConfiguredError: No printer has been selected.
            DeliveryError: A copy could not be delivered.

        """
        endpoint = self._require_endpoint()
        data = encode_receipt(order, business, self.layout, now)
        logger.info("Printing order #%d (%d items) on %s", order.order_number, len(order.items), endpoint)

        for copy in range(self.copies):
            if copy:
                time.sleep(self.copy_delay)
            try:
                self._send(data, endpoint)
            except DeliveryError as e:
                raise DeliveryError(f"Copy {copy + 1}/{self.copies} failed: {e}") from e

    @records_errors
    def test_print(self, now: datetime | None = None) -> None:
        endpoint = self._require_endpoint()
        self._send(encode_test_print(endpoint, self.layout, now), endpoint)
        logger.info("Test print sent to %s", endpoint)

    @records_errors
    def kick_drawer(self, pin: int = 2) -> None:
        """Kick the cash drawer."""
        endpoint = self._require_endpoint()
        self._send(encode_drawer(pin), endpoint)
        logger.info("Drawer kicked (pin %d)", pin)
