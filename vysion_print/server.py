"""Local control server: one HTTP-style request per TCP connection."""

from __future__ import annotations

import html
import json
import logging
import platform
import re
import socketserver
import threading
from dataclasses import dataclass
from typing import Any, Callable

from vysion_print.config import DEFAULT_HOST, DEFAULT_PORT, MAX_REQUEST_SIZE, REQUEST_TIMEOUT
from vysion_print.exceptions import DeliveryError, NotConfiguredError, ProtocolError
from vysion_print.models import BusinessProfile, Order, ServerState
from vysion_print.printer import PrinterService

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    500: "Internal Server Error",
}

CORS_HEADERS = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", "GET, POST, OPTIONS"),
    ("Access-Control-Allow-Headers", "Content-Type"),
)

JSON_TYPE = "application/json; charset=utf-8"
HTML_TYPE = "text/html; charset=utf-8"

_CONTENT_LENGTH = re.compile(rb"^content-length:\s*(\d+)\s*$", re.IGNORECASE | re.MULTILINE)


@dataclass(frozen=True)
class Request:
    method: str
    path: str
    body: str = ""


@dataclass(frozen=True)
class Response:
    status: int
    body: str = ""
    content_type: str | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def json(cls, status: int, data: dict[str, Any]) -> Response:
        return cls(status, json.dumps(data, separators=(",", ":"), ensure_ascii=False), JSON_TYPE, data)

    def to_bytes(self) -> bytes:
        """Serialize with CORS headers and a byte-accurate Content-Length."""
        body = self.body.encode("utf-8")
        lines = [f"HTTP/1.1 {self.status} {STATUS_TEXT.get(self.status, 'Unknown')}"]
        if self.content_type:
            lines.append(f"Content-Type: {self.content_type}")
        lines.append(f"Content-Length: {len(body)}")
        lines.extend(f"{name}: {value}" for name, value in CORS_HEADERS)
        lines.append("Connection: close")
        return ("\r\n".join(lines) + "\r\n\r\n").encode("ascii") + body


def parse_request(data: bytes) -> Request:
    """
    Split a raw request into method, path and body.

    Headers are skipped; the body is everything after the first blank line.

    Raises:
        ProtocolError: If the bytes are not UTF-8 or the request line is incomplete.

    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        raise ProtocolError("Request is not valid UTF-8") from None

    lines = text.split("\r\n")
    parts = lines[0].split()
    if len(parts) < 2:
        raise ProtocolError(f"Malformed request line: {lines[0][:80]!r}")

    body = ""
    if "" in lines:
        blank = lines.index("")
        body = "\r\n".join(lines[blank + 1 :])

    method, path = parts[0], parts[1].split("?", 1)[0]
    return Request(method, path, body)


def request_complete(buffer: bytes) -> bool:
    """True once the header block and any Content-Length body have arrived."""
    header_end = buffer.find(b"\r\n\r\n")
    if header_end < 0:
        return False
    match = _CONTENT_LENGTH.search(buffer[:header_end])
    if match is None:
        return True
    return len(buffer) - (header_end + 4) >= int(match.group(1))


class Router:
    """Maps method and path to printer operations; shared by the socket server and the bridge."""

    def __init__(self, service: PrinterService, state: ServerState | None = None):
        self.service = service
        self.state = state or service.state
        self._routes: dict[tuple[str, str], Callable[[str], Response]] = {
            ("GET", "/status"): self.status,
            ("GET", "/"): self.index,
            ("POST", "/print"): self.print_order,
            ("POST", "/drawer"): self.drawer,
            ("POST", "/test"): self.test_print,
        }

    def dispatch(self, method: str, path: str, body: str = "") -> Response:
        if method == "OPTIONS":
            return Response(200)

        handler = self._routes.get((method, path))
        if handler is None:
            return Response.json(404, {"error": "Not found"})

        try:
            return handler(body)
        except Exception:
            logger.exception("Error handling %s %s", method, path)
            return Response.json(500, {"error": "Internal server error"})

    def _printer_label(self, missing: str) -> str:
        endpoint = self.service.endpoint
        return endpoint.ip if endpoint else missing

    def status(self, body: str = "") -> Response:
        return Response.json(200, {"status": "online", "printer": self._printer_label("not configured")})

    def index(self, body: str = "") -> Response:
        page = f"""<html>
<head><title>Vysion Print Server</title></head>
<body style="font-family: sans-serif; padding: 40px; background: #1a1a2e; color: #fff;">
<h1>Vysion Print Server</h1>
<p style="color: #22c55e;">Server actief</p>
<p>Printer: {html.escape(self._printer_label("niet geconfigureerd"))}</p>
<p>Bonnen geprint: {self.state.print_count}</p>
</body>
</html>"""
        return Response(200, page, HTML_TYPE)

    def print_order(self, body: str) -> Response:
        try:
            payload = json.loads(body)
            if not isinstance(payload, dict) or "order" not in payload:
                raise ProtocolError("Body has no order")
            order = Order.from_json(payload["order"])
            business = BusinessProfile.from_json(payload.get("businessInfo"))
        except (ValueError, ProtocolError) as e:
            logger.warning("Rejected print request: %s", e)
            return Response.json(400, {"error": "Invalid order data"})

        return self._perform(lambda: self.service.print_receipt(order, business), "Print failed", counts=True)

    def drawer(self, body: str = "") -> Response:
        return self._perform(self.service.kick_drawer, "Drawer failed")

    def test_print(self, body: str = "") -> Response:
        return self._perform(self.service.test_print, "Test print failed", counts=True)

    def _perform(self, action: Callable[[], None], failure: str, counts: bool = False) -> Response:
        try:
            action()
        except NotConfiguredError as e:
            return Response.json(500, {"error": failure, "detail": str(e)})
        except DeliveryError:
            return Response.json(500, {"error": failure})

        if counts:
            self.state.record_print()
        return Response.json(200, {"success": True})


class ControlRequestHandler(socketserver.BaseRequestHandler):
    """Reads one request, answers it, and lets the server close the connection."""

    timeout = REQUEST_TIMEOUT

    def handle(self):
        data = self.read_request()
        if not data:
            return

        try:
            request = parse_request(data)
        except ProtocolError as e:
            logger.warning("Bad request from %s: %s", self.client_address[0], e)
            response = Response.json(400, {"error": "Invalid request"})
        else:
            logger.info("%s %s from %s", request.method, request.path, self.client_address[0])
            response = self.server.router.dispatch(request.method, request.path, request.body)

        try:
            self.request.sendall(response.to_bytes())
        except OSError as e:
            logger.warning("Could not answer %s: %s", self.client_address[0], e)

    def read_request(self) -> bytes:
        """Accumulate bytes until the client is done sending, goes quiet, or errors."""
        self.request.settimeout(self.timeout)
        buffer = b""
        while len(buffer) <= MAX_REQUEST_SIZE:
            try:
                chunk = self.request.recv(65536)
            except OSError as e:
                logger.debug("Stopped reading from %s: %s", self.client_address[0], e)
                break
            if not chunk:
                break
            buffer += chunk
            if request_complete(buffer):
                break
        return buffer


class ThreadingControlServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, router: Router):
        self.router = router
        super().__init__(server_address, ControlRequestHandler)


class ControlServer:
    """Runs the listener on its own thread; each connection gets its own thread too."""

    def __init__(self, router: Router, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
        self.router = router
        self.host = host
        self.port = port
        self._server: ThreadingControlServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        if self._server is None:
            return (self.host, self.port)
        return self._server.server_address[:2]

    def start(self) -> tuple[str, int]:
        if self._server is not None:
            return self.address
        self._server = ThreadingControlServer((self.host, self.port), self.router)
        self._thread = threading.Thread(target=self._server.serve_forever, name="control-server", daemon=True)
        self._thread.start()
        self.router.state.set_running(True)
        logger.info("Print server started on %s:%d", *self.address)
        return self.address

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._thread.join()
        self._server = None
        self._thread = None
        self.router.state.set_running(False)
        logger.info("Print server stopped")

    def wait(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def run_server(router: Router, host: str, port: int):
    """Start the control server and block until interrupted."""
    server = ControlServer(router, host, port)
    server.start()

    display_host = host if host != "0.0.0.0" else "localhost"
    endpoint = router.service.endpoint

    print("")
    print("=" * 50)
    print("  vysion-print - Receipt Printer Bridge")
    print("=" * 50)
    print(f"  Address  : {host}:{port}")
    print(f"  Printer  : {endpoint or 'not configured'}")
    print(f"  Layout   : {router.service.layout.name} ({router.service.layout.width} columns)")
    print(f"  Platform : {platform.system()}")
    print("=" * 50)
    print(f"  URL: http://{display_host}:{port}")
    print("=" * 50)
    print("")

    try:
        while server.is_alive():
            server.wait(0.5)
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.stop()
