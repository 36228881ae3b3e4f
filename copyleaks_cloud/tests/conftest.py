from __future__ import annotations

import json
import threading
from typing import Any, List, Optional

import pytest

from copyleaks_cloud.client.http import HttpResponse, RequestExecutor
from copyleaks_cloud.core.request import NetworkRequest


def json_response(payload: Any, status: int = 200) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers={"Content-Type": "application/json"},
        body_bytes=json.dumps(payload).encode("utf-8"),
    )


class StubTransport:
    """Records requests and replays canned responses (last one repeats)."""

    def __init__(self, *responses):
        self.responses: List[Any] = list(responses) or [json_response({})]
        self.requests: List[NetworkRequest] = []
        self._lock = threading.Lock()

    def __call__(self, request: NetworkRequest, timeout: float) -> HttpResponse:
        with self._lock:
            self.requests.append(request)
            item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def last(self) -> Optional[NetworkRequest]:
        return self.requests[-1] if self.requests else None


@pytest.fixture
def stub_transport():
    return StubTransport()


@pytest.fixture
def executor_factory():
    created = []

    def make(transport) -> RequestExecutor:
        ex = RequestExecutor(transport, timeout=5.0, max_workers=2)
        created.append(ex)
        return ex

    yield make
    for ex in created:
        ex.close()
