"""Tests for the control server and its router."""

import json
import socket
import threading

import pytest

from conftest import FRIET_ORDER, FakeDeliver
from vysion_print import commands
from vysion_print.exceptions import ProtocolError
from vysion_print.models import PrinterEndpoint
from vysion_print.printer import PrinterService
from vysion_print.server import ControlServer, Response, Router, parse_request, request_complete
from vysion_print.settings import PrinterSettings


@pytest.fixture
def router(service, state):
    return Router(service, state)


@pytest.fixture
def unconfigured_router(state, fake_deliver):
    return Router(PrinterService(PrinterSettings(), state, deliver=fake_deliver), state)


def print_body(order=FRIET_ORDER, **extra):
    return json.dumps({"order": order, **extra})


class TestRouter:
    def test_status(self, router):
        response = router.dispatch("GET", "/status")
        assert response.status == 200
        assert response.body == '{"status":"online","printer":"192.168.1.50"}'

    def test_status_not_configured(self, unconfigured_router):
        response = unconfigured_router.dispatch("GET", "/status")
        assert response.body == '{"status":"online","printer":"not configured"}'

    def test_print(self, router, state, fake_deliver, no_sleep):
        response = router.dispatch("POST", "/print", print_body(businessInfo={"name": "Frituur Nolim"}))

        assert response.status == 200
        assert response.data == {"success": True}
        assert state.print_count == 1
        assert len(fake_deliver.calls) == 2
        assert b"Frituur Nolim" in fake_deliver.calls[0][0]

    def test_print_failure(self, settings, state, no_sleep):
        router = Router(PrinterService(settings, state, deliver=FakeDeliver(False)), state)
        response = router.dispatch("POST", "/print", print_body())

        assert response.status == 500
        assert response.body == '{"error":"Print failed"}'
        assert state.print_count == 0

    @pytest.mark.parametrize("body", ["{}", '{"businessInfo": {}}', "not json", "", '["order"]', '{"order": []}'])
    def test_invalid_order(self, router, state, fake_deliver, body):
        response = router.dispatch("POST", "/print", body)

        assert response.status == 400
        assert response.body == '{"error":"Invalid order data"}'
        assert fake_deliver.calls == []
        assert state.print_count == 0

    def test_print_not_configured(self, unconfigured_router, fake_deliver):
        response = unconfigured_router.dispatch("POST", "/print", print_body())

        assert response.status == 500
        assert response.data == {"error": "Print failed", "detail": "Printer not configured"}
        assert fake_deliver.calls == []

    def test_drawer(self, router, state, fake_deliver):
        response = router.dispatch("POST", "/drawer")
        assert response.data == {"success": True}
        assert fake_deliver.calls[0][0] == b"\x1b\x40\x1b\x70\x00\x19\xfa"
        assert state.print_count == 0

    def test_drawer_failure(self, settings, state):
        router = Router(PrinterService(settings, state, deliver=FakeDeliver(False)), state)
        response = router.dispatch("POST", "/drawer")
        assert response.status == 500
        assert response.data == {"error": "Drawer failed"}

    def test_test_print_counts(self, router, state):
        response = router.dispatch("POST", "/test")
        assert response.data == {"success": True}
        assert state.print_count == 1

    def test_test_print_not_configured(self, unconfigured_router):
        response = unconfigured_router.dispatch("POST", "/test")
        assert response.data == {"error": "Test print failed", "detail": "Printer not configured"}

    def test_options(self, router):
        response = router.dispatch("OPTIONS", "/print")
        assert response.status == 200
        assert response.body == ""

    @pytest.mark.parametrize(("method", "path"), [("GET", "/print"), ("POST", "/status"), ("DELETE", "/"), ("GET", "/x")])
    def test_not_found(self, router, method, path):
        response = router.dispatch(method, path)
        assert response.status == 404
        assert response.body == '{"error":"Not found"}'

    def test_index(self, router, state):
        state.record_print()
        response = router.dispatch("GET", "/")
        assert response.content_type.startswith("text/html")
        assert "Printer: 192.168.1.50" in response.body
        assert "Bonnen geprint: 1" in response.body

    def test_unexpected_error(self, router, monkeypatch):
        def boom():
            raise RuntimeError("boom")

        monkeypatch.setattr(router.service, "kick_drawer", boom)
        response = router.dispatch("POST", "/drawer")
        assert response.status == 500
        assert response.data == {"error": "Internal server error"}


class TestResponse:
    def test_content_length_counts_bytes(self):
        raw = Response.json(200, {"printer": "café €"}).to_bytes()
        head, body = raw.split(b"\r\n\r\n", 1)
        assert f"Content-Length: {len(body)}".encode() in head
        assert len(body) > len('{"printer":"café €"}')

    def test_headers(self):
        raw = Response(200).to_bytes()
        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Access-Control-Allow-Origin: *\r\n" in raw
        assert b"Access-Control-Allow-Methods: GET, POST, OPTIONS\r\n" in raw
        assert b"Access-Control-Allow-Headers: Content-Type\r\n" in raw
        assert b"Connection: close\r\n" in raw
        assert b"Content-Type:" not in raw
        assert b"Content-Length: 0\r\n" in raw
        assert raw.endswith(b"\r\n\r\n")


class TestParseRequest:
    def test_post_with_body(self):
        request = parse_request(b'POST /print HTTP/1.1\r\nHost: x\r\nContent-Type: application/json\r\n\r\n{"a":1}')
        assert (request.method, request.path, request.body) == ("POST", "/print", '{"a":1}')

    def test_query_string_is_dropped(self):
        assert parse_request(b"GET /status?x=1 HTTP/1.1\r\n\r\n").path == "/status"

    def test_no_blank_line(self):
        assert parse_request(b"GET /status HTTP/1.1\r\nHost: x").body == ""

    @pytest.mark.parametrize("data", [b"GET\r\n\r\n", b"\xff\xfe /status", b"\r\n"])
    def test_malformed(self, data):
        with pytest.raises(ProtocolError):
            parse_request(data)


class TestRequestComplete:
    def test_waits_for_headers(self):
        assert not request_complete(b"GET /status HTTP/1.1\r\nHost: x")
        assert request_complete(b"GET /status HTTP/1.1\r\nHost: x\r\n\r\n")

    def test_waits_for_body(self):
        head = b"POST /print HTTP/1.1\r\ncontent-length: 7\r\n\r\n"
        assert not request_complete(head + b'{"a"')
        assert request_complete(head + b'{"a":1}')


def exchange(address, payload: bytes) -> bytes:
    with socket.create_connection(address, timeout=5) as conn:
        conn.sendall(payload)
        chunks = []
        while chunk := conn.recv(4096):
            chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def control_server(router):
    server = ControlServer(router, "127.0.0.1", 0)
    server.start()
    yield server
    server.stop()


class TestControlServer:
    def test_get_status(self, control_server, state):
        assert state.is_running
        raw = exchange(control_server.address, b"GET /status HTTP/1.1\r\nHost: localhost\r\n\r\n")
        head, body = raw.split(b"\r\n\r\n", 1)
        assert head.startswith(b"HTTP/1.1 200 OK")
        assert json.loads(body) == {"status": "online", "printer": "192.168.1.50"}

    def test_post_print(self, control_server, state, fake_deliver, no_sleep):
        body = print_body().encode()
        raw = exchange(
            control_server.address,
            b"POST /print HTTP/1.1\r\nContent-Type: application/json\r\nContent-Length: "
            + str(len(body)).encode()
            + b"\r\n\r\n"
            + body,
        )
        assert raw.endswith(b'{"success":true}')
        assert state.print_count == 1
        assert len(fake_deliver.calls) == 2

    def test_garbage_request(self, control_server):
        raw = exchange(control_server.address, b"\xff\xff\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 400 Bad Request")
        assert raw.endswith(b'{"error":"Invalid request"}')

    def test_stop_clears_running(self, router, state):
        server = ControlServer(router, "127.0.0.1", 0)
        server.start()
        server.stop()
        assert not state.is_running


@pytest.fixture
def loopback_printer():
    """A local port-9100 stand-in that records each connection's bytes."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(2)
    jobs = []

    def accept(count):
        for _ in range(count):
            conn, _ = listener.accept()
            with conn:
                chunks = []
                while chunk := conn.recv(4096):
                    chunks.append(chunk)
                jobs.append(b"".join(chunks))

    thread = threading.Thread(target=accept, args=(2,), daemon=True)
    thread.start()
    yield PrinterEndpoint("127.0.0.1", listener.getsockname()[1]), jobs, thread
    listener.close()


def test_print_reaches_network_printer(loopback_printer, state, no_sleep):
    endpoint, jobs, thread = loopback_printer
    service = PrinterService(PrinterSettings(endpoint=endpoint), state)
    server = ControlServer(Router(service, state), "127.0.0.1", 0)
    server.start()
    try:
        body = print_body().encode()
        raw = exchange(
            server.address,
            b"POST /print HTTP/1.1\r\nContent-Length: " + str(len(body)).encode() + b"\r\n\r\n" + body,
        )
    finally:
        server.stop()

    assert raw.endswith(b'{"success":true}')
    assert state.print_count == 1
    thread.join(5)
    assert len(jobs) == 2
    assert jobs[0] == jobs[1]
    assert jobs[0].startswith(commands.INITIALIZE + commands.CODE_PAGE_PC858)
    assert jobs[0].endswith(commands.CUT_FULL)
