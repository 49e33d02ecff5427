"""Persisted printer address."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading

from vysion_print.config import DEFAULT_PRINTER_PORT, settings_path
from vysion_print.models import PrinterEndpoint

logger = logging.getLogger(__name__)


class SettingsStore:
    """Key-value file holding the printer IP and port between restarts."""

    def __init__(self, path: str | None = None):
        self.path = path or settings_path()

    def load(self) -> PrinterEndpoint | None:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            return None
        ip = data.get("printer_ip")
        if not isinstance(ip, str) or not ip.strip():
            return None
        port = data.get("printer_port")
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            port = DEFAULT_PRINTER_PORT
        return PrinterEndpoint(ip.strip(), port)

    def save(self, endpoint: PrinterEndpoint | None) -> None:
        data = {
            "printer_ip": endpoint.ip if endpoint else "",
            "printer_port": endpoint.port if endpoint else DEFAULT_PRINTER_PORT,
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".vysion_print-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise


class PrinterSettings:
    """
    The active printer endpoint.

    Read by every request, written only when the user picks a printer
    (manual entry or a scan result). Readers get the frozen endpoint value.
    """

    def __init__(self, store: SettingsStore | None = None, endpoint: PrinterEndpoint | None = None):
        self._store = store
        self._lock = threading.Lock()
        self._endpoint = endpoint

    @classmethod
    def from_store(cls, store: SettingsStore) -> PrinterSettings:
        return cls(store, store.load())

    @property
    def endpoint(self) -> PrinterEndpoint | None:
        with self._lock:
            return self._endpoint

    def select(self, ip: str, port: int = DEFAULT_PRINTER_PORT) -> PrinterEndpoint:
        """Make `ip:port` the active printer and persist it."""
        ip = ip.strip()
        if not ip:
            raise ValueError("Printer IP must not be empty")
        if not 0 < port < 65536:
            raise ValueError(f"Invalid printer port {port}")
        endpoint = PrinterEndpoint(ip, port)
        with self._lock:
            self._endpoint = endpoint
            if self._store is not None:
                self._store.save(endpoint)
        logger.info("Printer set to %s", endpoint)
        return endpoint

    def clear(self) -> None:
        with self._lock:
            self._endpoint = None
            if self._store is not None:
                self._store.save(None)


def parse_printer_address(value: str) -> PrinterEndpoint:
    """Parse `IP` or `IP:PORT` as given on the command line."""
    value = value.strip()
    if not re.match(r"^\d+\.\d+\.\d+\.\d+(:\d+)?$", value):
        raise ValueError(f"Expected IP or IP:PORT, got {value!r}")
    if ":" in value:
        host, port = value.rsplit(":", 1)
        return PrinterEndpoint(host, int(port))
    return PrinterEndpoint(value)
