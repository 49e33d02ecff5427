"""One-shot delivery of ESC/POS bytes to a network printer."""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from escpos.exceptions import DeviceNotFoundError
from escpos.printer import Network

from vysion_print.config import PRINT_TIMEOUT
from vysion_print.models import PrinterEndpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.success


class _State(Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class Resolution:
    """
    Exactly-once outcome shared by racing completion sources.

    The I/O worker and the timeout timer both call `resolve()`; the first
    call claims the outcome under the lock and every later call is ignored.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = _State.PENDING
        self._result: DeliveryResult | None = None
        self._done = threading.Event()

    def resolve(self, success: bool, error: str | None = None) -> bool:
        """Claim the outcome. Returns False if another source already did."""
        with self._lock:
            if self._state is not _State.PENDING:
                return False
            self._state = _State.RESOLVED
            self._result = DeliveryResult(success, error)
        self._done.set()
        return True

    @property
    def resolved(self) -> bool:
        with self._lock:
            return self._state is _State.RESOLVED

    def wait(self, timeout: float | None = None) -> DeliveryResult | None:
        self._done.wait(timeout)
        with self._lock:
            return self._result


PrinterFactory = Callable[..., Network]


def _close(printer) -> None:
    try:
        printer.close()
    except OSError as e:
        logger.debug("Error closing printer connection: %s", e)


def _abort(printer) -> None:
    """Shut the socket down under the worker; a pending connect or write fails at once."""
    device = getattr(printer, "_device", None)
    if not device:
        return
    try:
        device.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug("Error aborting printer connection: %s", e)


def deliver(
    data: bytes,
    endpoint: PrinterEndpoint,
    timeout: float = PRINT_TIMEOUT,
    printer_factory: PrinterFactory = Network,
) -> DeliveryResult:
    """
    Open a new connection to the printer, write `data` and close it.

    Whichever comes first decides the result: the write completing, the
    connection failing, or `timeout` seconds elapsing. When the timeout wins,
    the socket is shut down at once, which aborts a pending connect or write,
    and a connection that only opens after the deadline never gets the data.
    """
    outcome = Resolution()
    printer = printer_factory(endpoint.ip, endpoint.port, timeout=timeout)

    def send():
        try:
            printer.open()
            if outcome.resolved:
                logger.debug("Connected to %s after the deadline, not sending", endpoint)
                return
            printer._raw(data)
        except (DeviceNotFoundError, OSError) as e:
            outcome.resolve(False, f"Connection to {endpoint} failed: {e}")
        else:
            outcome.resolve(True)
        finally:
            _close(printer)

    def expire():
        if outcome.resolve(False, f"Printer {endpoint} timed out after {timeout:g}s"):
            _abort(printer)

    worker = threading.Thread(target=send, name=f"deliver-{endpoint}", daemon=True)
    timer = threading.Timer(timeout, expire)
    timer.daemon = True

    worker.start()
    timer.start()
    result = outcome.wait()
    timer.cancel()

    if result.success:
        logger.info("Delivered %d bytes to %s", len(data), endpoint)
    else:
        logger.warning("Delivery to %s failed: %s", endpoint, result.error)
    return result
