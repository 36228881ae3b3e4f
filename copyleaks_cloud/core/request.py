from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlencode

from .errors import EncodingError
from .headers import CONTENT_TYPE, JSON_CONTENT_TYPE, get_header, merge_headers

SCHEME = "https"
DEFAULT_HOST = "api.copyleaks.com"
DEFAULT_API_VERSION = "v1"
RAW_CONTENT_TYPE = "application/octet-stream"

METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


def _frozen(mapping: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    if mapping is None:
        return None
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """What to send, before URL resolution and body encoding.

    Precedence: when both `parameters` and `body` are supplied, the JSON
    encoding of `parameters` replaces `body`.
    """

    method: str
    route: str
    parameters: Optional[Mapping[str, Any]] = None
    headers: Optional[Mapping[str, str]] = None
    body: Optional[bytes] = None
    query: Optional[Mapping[str, str]] = None

    def __post_init__(self) -> None:
        method = (self.method or "").upper()
        if method not in METHODS:
            raise ValueError(f"unsupported HTTP method: {self.method!r}")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "parameters", _frozen(self.parameters))
        object.__setattr__(self, "headers", _frozen(self.headers))
        object.__setattr__(self, "query", _frozen(self.query))


@dataclass(frozen=True, slots=True)
class NetworkRequest:
    """A fully built request, ready for the executor."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return get_header(self.headers, name)


class RequestBuilder:
    """Resolve routes against the API root and encode request bodies.

    URL layout: https://<host>/<api_version>/<route>[?query]

    Caller headers are applied as given; the builder only replaces
    Content-Type when it encodes the body itself (JSON parameters), or
    supplies one when the caller sent a raw body without it.
    """

    def __init__(self, host: str = DEFAULT_HOST, api_version: str = DEFAULT_API_VERSION):
        host = (host or "").strip().strip("/")
        if not host:
            raise ValueError("host must be non-empty")
        self.host = host
        self.api_version = (api_version or "").strip().strip("/")

    def url_for(self, route: str, query: Optional[Mapping[str, str]] = None) -> str:
        path = quote(route.lstrip("/"), safe="/-_.~")
        prefix = f"/{self.api_version}" if self.api_version else ""
        url = f"{SCHEME}://{self.host}{prefix}/{path}"
        if query:
            url += "?" + urlencode(list(query.items()))
        return url

    def build(self, spec: RequestSpec) -> NetworkRequest:
        """Build a NetworkRequest.

        Raises
        - EncodingError: parameters are not JSON-serializable (including NaN
          and infinities). No request is produced.
        """

        headers: Dict[str, str] = merge_headers(spec.headers)

        if spec.parameters is not None:
            try:
                body = json.dumps(
                    dict(spec.parameters), allow_nan=False, ensure_ascii=False
                ).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise EncodingError(f"cannot encode request parameters as JSON: {e}") from e
            headers = merge_headers(headers, {CONTENT_TYPE: JSON_CONTENT_TYPE})
        elif spec.body is not None:
            body = bytes(spec.body)
            if get_header(headers, CONTENT_TYPE) is None:
                headers = merge_headers(headers, {CONTENT_TYPE: RAW_CONTENT_TYPE})
        else:
            body = b""
            if get_header(headers, CONTENT_TYPE) is None:
                headers = merge_headers(headers, {CONTENT_TYPE: JSON_CONTENT_TYPE})

        if body:
            headers = merge_headers(headers, {"Content-Length": str(len(body))})

        return NetworkRequest(
            method=spec.method,
            url=self.url_for(spec.route, spec.query),
            headers=MappingProxyType(headers),
            body=body,
        )
