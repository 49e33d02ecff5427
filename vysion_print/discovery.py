"""Find receipt printers by probing the local /24 subnet on the printer port."""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, Iterable

import psutil

from vysion_print.config import (
    SCAN_BATCH_SIZE,
    SCAN_HOST_COUNT,
    SCAN_INTERFACES,
    SCAN_PORT,
    SCAN_PROBE_TIMEOUT,
)
from vysion_print.models import DiscoveredPrinter

logger = logging.getLogger(__name__)


class ScanState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


def local_ipv4(interfaces: Iterable[str] = SCAN_INTERFACES) -> str | None:
    """IPv4 address of the first candidate interface that has one."""
    addresses = psutil.net_if_addrs()
    for name in interfaces:
        for address in addresses.get(name, ()):
            if address.family == socket.AF_INET:
                return address.address
    return None


def subnet_prefix(ip: str) -> str | None:
    """First three octets of an IPv4 address, e.g. '192.168.1'."""
    try:
        address = ipaddress.IPv4Address(ip)
    except ipaddress.AddressValueError:
        return None
    return str(address).rsplit(".", 1)[0]


def probe_printer(ip: str, port: int = SCAN_PORT, timeout: float = SCAN_PROBE_TIMEOUT) -> DiscoveredPrinter | None:
    """
    Try a TCP connection to `ip:port`.

    Anything listening there counts as a printer; this is a reachability
    check, not a printer handshake.
    """
    start = time.monotonic()
    try:
        with socket.create_connection((ip, port), timeout=timeout):
            latency = time.monotonic() - start
    except OSError as e:
        logger.debug("No printer at %s:%d (%s)", ip, port, e)
        return None
    return DiscoveredPrinter(ip=ip, port=port, latency=latency)


class NetworkScanner:
    """
    Scans `subnet.1` to `subnet.254` in batches of concurrent probes.

    At most one scan runs at a time. Progress and found printers are reported
    through the optional callbacks as each probe finishes; they are called
    from the scan thread.
    """

    def __init__(
        self,
        port: int = SCAN_PORT,
        batch_size: int = SCAN_BATCH_SIZE,
        probe_timeout: float = SCAN_PROBE_TIMEOUT,
        interfaces: Iterable[str] = SCAN_INTERFACES,
        probe: Callable[..., DiscoveredPrinter | None] = probe_printer,
        on_progress: Callable[[float], None] | None = None,
        on_found: Callable[[DiscoveredPrinter], None] | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.port = port
        self.batch_size = batch_size
        self.probe_timeout = probe_timeout
        self.interfaces = tuple(interfaces)
        self.on_progress = on_progress
        self.on_found = on_found
        self._probe = probe

        self._lock = threading.Lock()
        self._state = ScanState.IDLE
        self._progress = 0.0
        self._found: dict[str, DiscoveredPrinter] = {}
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._state

    @property
    def is_scanning(self) -> bool:
        return self.state is ScanState.SCANNING

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def found(self) -> list[DiscoveredPrinter]:
        with self._lock:
            return list(self._found.values())

    def start_scan(self) -> bool:
        """Start a scan in the background. Returns False if one is already running."""
        with self._lock:
            if self._state is ScanState.SCANNING:
                return False
            self._state = ScanState.SCANNING
            self._progress = 0.0
            self._found = {}
            self._cancel.clear()
            self._thread = threading.Thread(target=self._run, name="printer-scan", daemon=True)
            self._thread.start()
        return True

    def stop_scan(self) -> None:
        """Stop issuing batches; probes already running are allowed to finish."""
        self._cancel.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the current scan is over. Returns False on timeout."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return True

    def scan(self) -> list[DiscoveredPrinter]:
        """Run a scan to completion and return what it found."""
        self.start_scan()
        self.wait()
        return self.found

    def _run(self) -> None:
        completed = False
        try:
            ip = local_ipv4(self.interfaces)
            subnet = subnet_prefix(ip) if ip else None
            if subnet is None:
                logger.warning("No IPv4 address on %s, cannot scan", ", ".join(self.interfaces))
                return
            logger.info("Scanning %s.1-%d on port %d", subnet, SCAN_HOST_COUNT, self.port)
            completed = self._scan_subnet(subnet)
        finally:
            with self._lock:
                self._state = ScanState.IDLE
                if completed:
                    self._progress = 1.0
                found = len(self._found)
            if completed:
                logger.info("Scan finished, %d printer(s) found", found)
            else:
                logger.info("Scan stopped, %d printer(s) found", found)

    def _scan_subnet(self, subnet: str) -> bool:
        hosts = [f"{subnet}.{i}" for i in range(1, SCAN_HOST_COUNT + 1)]
        scanned = 0

        with ThreadPoolExecutor(max_workers=self.batch_size, thread_name_prefix="probe") as pool:
            for start in range(0, len(hosts), self.batch_size):
                if self._cancel.is_set():
                    return False
                batch = hosts[start : start + self.batch_size]
                futures = [pool.submit(self._probe, ip, self.port, self.probe_timeout) for ip in batch]
                for future in as_completed(futures):
                    scanned += 1
                    self._record(scanned / len(hosts), future.result())

        return True

    def _record(self, progress: float, printer: DiscoveredPrinter | None) -> None:
        added = False
        with self._lock:
            self._progress = progress
            if printer is not None and printer.ip not in self._found:
                self._found[printer.ip] = printer
                added = True
        if added:
            logger.info("Printer found at %s:%d (%.0f ms)", printer.ip, printer.port, printer.latency * 1000)
            if self.on_found:
                self.on_found(printer)
        if self.on_progress:
            self.on_progress(progress)
