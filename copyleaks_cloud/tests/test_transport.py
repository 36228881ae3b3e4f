from __future__ import annotations

import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from copyleaks_cloud.client.http import RequestExecutor, urllib_transport
from copyleaks_cloud.core.errors import NetworkError, ServerError
from copyleaks_cloud.core.request import NetworkRequest
from copyleaks_cloud.models import ApiError


class _Handler(BaseHTTPRequestHandler):
    seen: list = []

    def log_message(self, format, *args):
        pass

    def _reply(self, status: int, payload) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_POST(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        self.seen.append({"path": self.path, "headers": dict(self.headers), "body": body})
        if self.path.startswith("/v1/businesses/create-by-url"):
            self._reply(401, {"Message": "Authorization has been denied for this request."})
        else:
            self._reply(200, {"echo": json.loads(body or b"null")})

    def do_GET(self):
        self.seen.append({"path": self.path, "headers": dict(self.headers), "body": b""})
        self._reply(200, [{"Extension": "pdf"}])


@pytest.fixture
def local_api(monkeypatch):
    monkeypatch.setenv("no_proxy", "*")
    monkeypatch.setenv("NO_PROXY", "*")
    _Handler.seen = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()
    thread.join(5)


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_transport_sends_headers_and_body(local_api):
    req = NetworkRequest(
        "POST",
        f"{local_api}/v1/account/login-api",
        {"Content-Type": "application/json", "copyleaks-sandbox-mode": "true"},
        b'{"Email": "a@b.c"}',
    )
    resp = urllib_transport(req, 5.0)

    assert resp.status == 200
    assert resp.json() == {"echo": {"Email": "a@b.c"}}
    (seen,) = _Handler.seen
    assert seen["path"] == "/v1/account/login-api"
    assert seen["body"] == b'{"Email": "a@b.c"}'
    headers = {k.lower(): v for k, v in seen["headers"].items()}
    assert headers["copyleaks-sandbox-mode"] == "true"
    assert headers["content-type"] == "application/json"


def test_transport_returns_error_status_as_response(local_api):
    req = NetworkRequest("POST", f"{local_api}/v1/businesses/create-by-url", {}, b"{}")
    resp = urllib_transport(req, 5.0)
    assert resp.status == 401
    assert not resp.ok
    assert resp.json()["Message"].startswith("Authorization has been denied")


def test_executor_maps_real_401_to_server_error(local_api):
    req = NetworkRequest(
        "POST",
        f"{local_api}/v1/businesses/create-by-url",
        {"Content-Type": "application/json"},
        b'{"Url": "http://example.com/doc"}',
    )
    with RequestExecutor(urllib_transport, timeout=5.0) as ex:
        with pytest.raises(ServerError) as ei:
            ex.execute(req).result(timeout=10)
    assert ei.value.status == 401
    assert isinstance(ei.value.detail, ApiError)
    assert "denied" in ei.value.detail.message


def test_executor_get_over_real_transport(local_api):
    req = NetworkRequest("GET", f"{local_api}/v1/miscellaneous/supported-file-types", {})
    with RequestExecutor(urllib_transport, timeout=5.0) as ex:
        assert ex.execute(req).result(timeout=10) == [{"Extension": "pdf"}]
    assert _Handler.seen[0]["body"] == b""


def test_connection_refused_is_network_error(monkeypatch):
    monkeypatch.setenv("no_proxy", "*")
    monkeypatch.setenv("NO_PROXY", "*")
    req = NetworkRequest("GET", f"http://127.0.0.1:{_closed_port()}/v1/miscellaneous/ocr-languages-list", {})

    with pytest.raises(NetworkError):
        urllib_transport(req, 5.0)
    with RequestExecutor(timeout=5.0) as ex:
        with pytest.raises(NetworkError):
            ex.execute(req).result(timeout=10)
