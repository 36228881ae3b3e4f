from __future__ import annotations

import json
import logging
import ssl
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit
from urllib.request import Request, urlopen

from pydantic import ValidationError

from ..core.errors import (
    Cancelled,
    CopyleaksError,
    DecodingError,
    NetworkError,
    ServerError,
)
from ..core.request import NetworkRequest
from ..models import ApiError

log = logging.getLogger("copyleaks_cloud.http")


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response wrapper.

    Security notes:
    - Treat `body_bytes` as untrusted.

    """

    status: int
    headers: Mapping[str, str]
    body_bytes: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode body as JSON; an empty body decodes to None.

        Raises
        - DecodingError: body is not UTF-8 JSON.
        """

        if not self.body_bytes.strip():
            return None
        try:
            return json.loads(self.body_bytes.decode("utf-8", errors="strict"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodingError(f"response body is not valid JSON (HTTP {self.status})") from e


Transport = Callable[[NetworkRequest, float], HttpResponse]


def urllib_transport(request: NetworkRequest, timeout: float) -> HttpResponse:
    """Send a request with urllib.

    Security notes:
    - Uses default SSL context (verification ON).
    - Non-2xx responses are returned, not raised; status handling happens in
      the executor.
    """

    req = Request(url=request.url, data=request.body or None, method=request.method)
    for name, value in request.headers.items():
        req.add_header(name, value)

    try:
        ctx = ssl.create_default_context()
        with urlopen(req, context=ctx, timeout=timeout) as resp:
            body = resp.read()
            headers = {k: v for k, v in resp.headers.items()}
            return HttpResponse(status=int(resp.status), headers=headers, body_bytes=body)
    except HTTPError as e:
        body = e.read() if hasattr(e, "read") else b""
        headers = dict(getattr(e, "headers", {}) or {})
        return HttpResponse(
            status=int(getattr(e, "code", 0) or 0), headers=headers, body_bytes=body
        )
    except URLError as e:
        raise NetworkError(f"network error: {e.reason}") from e
    except (TimeoutError, OSError) as e:
        raise NetworkError(f"network error: {e}") from e


def interpret_response(response: HttpResponse) -> Any:
    """Map an HTTP response to decoded JSON or a typed error.

    Raises
    - ServerError: non-2xx status; `detail` is an ApiError when the body is a
      vendor error object, else the decoded JSON or raw text.
    - DecodingError: 2xx with a body that is not JSON.
    """

    if response.ok:
        return response.json()

    detail: Any
    try:
        detail = response.json()
    except DecodingError:
        detail = response.body_bytes.decode("utf-8", errors="replace") or None

    message = f"server returned HTTP {response.status}"
    if isinstance(detail, dict):
        try:
            detail = ApiError.model_validate(detail)
        except ValidationError:
            pass
        else:
            if detail.message:
                message = f"{message}: {detail.message}"
    raise ServerError(response.status, detail, message)


@dataclass(frozen=True, slots=True)
class Result:
    """Outcome of one request: exactly one of `value` / `error` is meaningful."""

    value: Any = None
    error: Optional[CopyleaksError] = None

    @classmethod
    def success(cls, value: Any) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CopyleaksError) -> "Result":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


CompletionHandler = Callable[[Result], None]


class CloudRequest:
    """One in-flight request together with its completion handler.

    The outcome is delivered exactly once: the first of (transport finished,
    cancel(), early failure) wins and later outcomes are dropped. The
    completion handler runs on whichever thread delivers the outcome.
    """

    def __init__(
        self,
        request: Optional[NetworkRequest],
        on_complete: Optional[CompletionHandler] = None,
        transform: Optional[Callable[[Any], Any]] = None,
    ):
        self.request = request
        self._on_complete = on_complete
        self._transform = transform
        self._future: Future = Future()
        self._lock = Lock()
        self._delivered = False
        self._task: Optional[Future] = None

    def __repr__(self) -> str:
        target = f"{self.request.method} {urlsplit(self.request.url).path}" if self.request else "-"
        return f"CloudRequest({target}, done={self.done()})"

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block for the decoded JSON; raises the typed error on failure."""

        return self._future.result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self._future.exception(timeout)

    def add_done_callback(self, fn: Callable[["CloudRequest"], None]) -> None:
        self._future.add_done_callback(lambda _f: fn(self))

    def cancel(self) -> bool:
        """Cancel the request.

        Returns True if the cancellation was delivered, False if an outcome
        had already been delivered.
        """

        delivered = self._deliver(Result.failure(Cancelled("request cancelled")))
        task = self._task
        if delivered and task is not None:
            task.cancel()
        return delivered

    def _attach(self, task: Future) -> None:
        self._task = task
        if self.done():
            task.cancel()

    def _deliver(self, outcome: Result) -> bool:
        with self._lock:
            if self._delivered:
                return False
            self._delivered = True

        if outcome.ok:
            self._future.set_result(outcome.value)
        else:
            self._future.set_exception(outcome.error)

        if self._on_complete is not None:
            try:
                self._on_complete(outcome)
            except Exception:
                log.exception("completion_handler_failed")
        return True

    def _run(self, transport: Transport, timeout: float) -> None:
        if self.done():
            return
        req = self.request
        start = time.monotonic()
        status = None
        try:
            response = transport(req, timeout)
            status = response.status
            value = interpret_response(response)
            # a cancelled request must not run side effects such as saving a token
            if self._transform is not None and not self.done():
                value = self._transform(value)
            outcome = Result.success(value)
        except CopyleaksError as e:
            outcome = Result.failure(e)
        except Exception as e:
            log.exception("transport_failed")
            outcome = Result.failure(NetworkError(f"transport failed: {e}"))

        dur_ms = int((time.monotonic() - start) * 1000)
        log.info(
            "api_request",
            extra={
                "method": req.method,
                "path": urlsplit(req.url).path,
                "status_code": status,
                "duration_ms": dur_ms,
                "error": type(outcome.error).__name__ if outcome.error else None,
            },
        )
        if not self._deliver(outcome):
            log.debug("late_result_dropped", extra={"path": urlsplit(req.url).path})


class RequestExecutor:
    """Run requests on a worker pool and deliver one Result per request.

    No retries: a transport failure is reported once.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        timeout: float = 60.0,
        max_workers: int = 4,
    ):
        self.transport: Transport = transport or urllib_transport
        self.timeout = float(timeout)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="copyleaks")

    def execute(
        self,
        request: NetworkRequest,
        on_complete: Optional[CompletionHandler] = None,
        *,
        transform: Optional[Callable[[Any], Any]] = None,
    ) -> CloudRequest:
        """Dispatch `request`; returns immediately."""

        call = CloudRequest(request, on_complete, transform)
        call._attach(self._pool.submit(call._run, self.transport, self.timeout))
        return call

    def fail(
        self,
        error: CopyleaksError,
        on_complete: Optional[CompletionHandler] = None,
        request: Optional[NetworkRequest] = None,
    ) -> CloudRequest:
        """Complete a request with `error` without touching the network.

        The handler still runs on a worker thread, like any other outcome.
        """

        call = CloudRequest(request, on_complete)
        call._attach(self._pool.submit(call._deliver, Result.failure(error)))
        return call

    def close(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "RequestExecutor":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
