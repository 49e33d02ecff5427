"""
In-process message bridge for an embedded web client.

Offers the same status/print/drawer/test operations as the control server,
with the same JSON bodies, for clients that post messages instead of
opening sockets. Messages look like::

    {"requestId": "1718", "path": "/print", "method": "POST", "body": "{...}"}

and every reply echoes the request id::

    {"requestId": "1718", "success": true, "status": 200, "data": {"success": true}}
"""

from __future__ import annotations

import logging
import queue
from typing import Any, Callable

from vysion_print.server import Response, Router

logger = logging.getLogger(__name__)

BRIDGE_PATHS = ("/status", "/print", "/drawer", "/test")


class Bridge:
    def __init__(self, router: Router):
        self.router = router

    def handle(self, message: Any) -> dict[str, Any]:
        """Answer one message with the reply the socket server would have sent."""
        if not isinstance(message, dict):
            return self._reply(None, Response.json(400, {"error": "Invalid request"}))

        request_id = message.get("requestId")
        path = message.get("path")
        if not isinstance(path, str) or path not in BRIDGE_PATHS:
            return self._reply(request_id, Response.json(404, {"error": "Not found"}))

        method = message.get("method") or ("GET" if path == "/status" else "POST")
        body = message.get("body") or ""
        if not isinstance(body, str):
            return self._reply(request_id, Response.json(400, {"error": "Invalid order data"}))

        logger.info("Bridge %s %s (request %s)", method, path, request_id)
        return self._reply(request_id, self.router.dispatch(method, path, body))

    @staticmethod
    def _reply(request_id: Any, response: Response) -> dict[str, Any]:
        return {
            "requestId": request_id,
            "success": 200 <= response.status < 300,
            "status": response.status,
            "data": response.data or {},
        }

    def run(self, inbox: queue.Queue, reply: Callable[[dict[str, Any]], None]) -> None:
        """Answer messages from `inbox` until a None message arrives."""
        while True:
            message = inbox.get()
            try:
                if message is None:
                    return
                reply(self.handle(message))
            finally:
                inbox.task_done()
