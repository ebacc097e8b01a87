import logging
import socket
import threading
import time
from collections.abc import Callable, Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest

from httpmux.logging_config import LOGGER_NAME
from httpmux.transport import HttpxTransport


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _send(self, status: int, body: bytes, headers: list[tuple[str, str]] = ()) -> None:
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_slowly(self, body: bytes, delay: float) -> None:
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        try:
            for i in range(len(body)):
                self.wfile.write(body[i:i + 1])
                self.wfile.flush()
                time.sleep(delay)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def do_GET(self):
        if self.path == "/ok":
            self._send(200, b"hello", [("Content-Type", "text/plain; charset=utf-8")])
        elif self.path == "/redirect":
            self._send(302, b"", [("Location", "/ok"), ("X-Hop", "first")])
        elif self.path == "/cookies":
            self._send(200, b"", [("Set-Cookie", "a=1; Path=/"), ("Set-Cookie", "b=2; Path=/")])
        elif self.path == "/slow":
            self._send_slowly(b"0123456789", 0.2)
        elif self.path.startswith("/status/"):
            self._send(int(self.path.rsplit("/", 1)[1]), b"status")
        else:
            self._send(404, b"not found")

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)
        self._send(200, body, [("X-Content-Type", self.headers.get("Content-Type", ""))])


@pytest.fixture
def local_server() -> Iterator[str]:
    """Base URL of a throwaway HTTP server on localhost."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def closed_port() -> int:
    """A localhost port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def mock_transport() -> Callable[[Callable], HttpxTransport]:
    """Build an HttpxTransport whose network layer is an httpx.MockTransport."""

    def factory(handler: Callable) -> HttpxTransport:
        return HttpxTransport(httpx.MockTransport(handler))

    return factory


@pytest.fixture
def reset_logging() -> Iterator[None]:
    """Restore the package logger after a test configures it."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
