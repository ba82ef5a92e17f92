"""Shared fixtures: import path wiring and a local HTTP server for adlist sources."""

# pylint: disable=missing-function-docstring
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from sys import path
from typing import Dict, Optional, Tuple

from pytest import fixture

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in path:
    path.insert(0, str(ROOT))

# path -> (status, extra headers, body)
Route = Tuple[int, Dict[str, str], bytes]


class _Handler(BaseHTTPRequestHandler):
    routes: Dict[str, Route] = {}

    def do_GET(self):  # pylint: disable=invalid-name
        status, headers, body = self.routes.get(self.path, (404, {}, b"not found"))
        self.send_response(status)
        for name, value in headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):  # pylint: disable=redefined-builtin
        pass


class LocalServer:
    """HTTP/1.0 server; responses without Content-Length end when the connection closes."""

    def __init__(self):
        self.routes: Dict[str, Route] = {}
        handler = type("Handler", (_Handler,), {"routes": self.routes})
        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def add(self, route: str, body: bytes, status: int = 200,
            headers: Optional[Dict[str, str]] = None, content_length: bool = True) -> str:
        headers = dict(headers or {})
        if content_length and "content-length" not in {name.lower() for name in headers}:
            headers["Content-Length"] = str(len(body))
        self.routes[route] = (status, headers, body)
        return self.url(route)

    def url(self, route: str) -> str:
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}{route}"


@fixture
def http_server():
    server = LocalServer()
    server.thread.start()
    yield server
    server.httpd.shutdown()
    server.httpd.server_close()


@fixture
def write_adlist(tmp_path):
    """Write an adlist file and return its file:// URL."""

    def _write(content, name="adlist.txt"):
        adlist_path = tmp_path / name
        if isinstance(content, str):
            content = content.encode("utf-8")
        adlist_path.write_bytes(content)
        return adlist_path.as_uri()

    return _write
