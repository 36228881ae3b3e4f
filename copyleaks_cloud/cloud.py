"""
Copyleaks cloud client.

One method per API operation. Every method returns a `CloudRequest`
immediately; the decoded JSON (or a typed error) arrives through
`CloudRequest.result()` and, when given, the `on_complete` handler.

Example:
    >>> from copyleaks_cloud import CopyleaksCloud, CloudConfig, ProductType
    >>>
    >>> with CopyleaksCloud(CloudConfig(product=ProductType.ACADEMIC)) as cloud:
    ...     cloud.login("me@example.com", "my-api-key").result()
    ...     created = cloud.create_by_url("https://example.com/essay").result()
    ...     status = cloud.status(created["ProcessId"]).result()
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Union

from .auth.token import AccessToken, AuthTokenProvider, FileTokenStore
from .client.http import CloudRequest, CompletionHandler, RequestExecutor
from .config import CloudConfig
from .core.errors import EncodingError, Unauthenticated
from .core.headers import CONTENT_TYPE, TEXT_CONTENT_TYPE, HeaderBuilder, merge_headers
from .core.multipart import MultipartFile, encode_multipart, multipart_content_type
from .core.request import RequestBuilder, RequestSpec
from .models import CallbackOptions

log = logging.getLogger("copyleaks_cloud.cloud")

DEFAULT_LANGUAGE = "English"

FileInput = Union[str, "os.PathLike[str]", MultipartFile]


def _require_id(process_id: str) -> str:
    """Validate a process id as a single route segment.

    Security notes:
    - Ids that could leave the product route (`/`, `\\`, `.` and `..`) are
      rejected so a request never reaches a different endpoint.
    """

    pid = (process_id or "").strip()
    if not pid:
        raise ValueError("process_id must be non-empty")
    if "/" in pid or "\\" in pid or pid in {".", ".."}:
        raise ValueError(f"invalid process_id: {pid!r}")
    return pid


class CopyleaksCloud:
    """Client for one product (businesses or academic) of the Copyleaks API.

    Configuration is per instance; several clients with different products or
    sandbox settings can run side by side. Distinct calls are independent and
    unordered.

    Authentication
    - `login` stores the returned token in `self.tokens`; later calls read it.
    - With `config.require_token` set, authenticated calls made without a
      usable token complete with `Unauthenticated` and never reach the network.
      Otherwise they are sent without Authorization and the server rejects
      them (`ServerError`).

    Errors
    - Network-stage failures never raise from these methods; they are
      delivered through the returned CloudRequest.
    - Invalid local input (empty process id, unreadable or oversize upload
      file) raises immediately.
    """

    def __init__(
        self,
        config: Optional[CloudConfig] = None,
        *,
        token_provider: Optional[AuthTokenProvider] = None,
        executor: Optional[RequestExecutor] = None,
        options: Optional[CallbackOptions] = None,
        header_builder: Optional[HeaderBuilder] = None,
    ):
        self.config = config or CloudConfig()
        if token_provider is None:
            store = FileTokenStore(self.config.token_file) if self.config.token_file else None
            token_provider = AuthTokenProvider(store)
        self.tokens = token_provider
        self._owns_executor = executor is None
        self.executor = executor or RequestExecutor(
            timeout=self.config.timeout_seconds, max_workers=self.config.max_workers
        )
        self.options = options or CallbackOptions()
        self.headers = header_builder or HeaderBuilder()
        self.builder = RequestBuilder(self.config.host, self.config.api_version)

    def __enter__(self) -> "CopyleaksCloud":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_executor:
            self.executor.close()

    # routing / headers

    def _route(self, *segments: str) -> str:
        return "/".join((self.config.product.value,) + segments)

    def _public_headers(self) -> Dict[str, str]:
        return self.headers.build()

    def _auth_headers(self) -> Dict[str, str]:
        return self.headers.build(token=self.tokens.current())

    def _create_headers(self, options: Optional[CallbackOptions]) -> Dict[str, str]:
        return self.headers.build(
            token=self.tokens.current(),
            options=options if options is not None else self.options,
            sandbox=self.config.sandbox,
        )

    def _dispatch(
        self,
        spec: RequestSpec,
        on_complete: Optional[CompletionHandler],
        *,
        authenticated: bool = True,
        transform=None,
    ) -> CloudRequest:
        if authenticated and self.config.require_token and self.tokens.authorization_value() is None:
            log.warning("unauthenticated_call", extra={"route": spec.route})
            return self.executor.fail(
                Unauthenticated(f"{spec.route} requires a valid access token; call login first"),
                on_complete,
            )
        try:
            request = self.builder.build(spec)
        except EncodingError as e:
            log.warning("request_encoding_failed", extra={"route": spec.route})
            return self.executor.fail(e, on_complete)
        return self.executor.execute(request, on_complete, transform=transform)

    def _save_token(self, payload: Any) -> Any:
        self.tokens.save(AccessToken.from_login_response(payload))
        return payload

    # account

    def login(
        self, email: str, api_key: str, on_complete: Optional[CompletionHandler] = None
    ) -> CloudRequest:
        """Log in with account email and API key.

        The token is saved before the raw login JSON is delivered. A success
        response without a token is delivered as DecodingError. A login
        cancelled before its response is processed saves nothing; a cancel
        that lands while the token is being saved still reports Cancelled,
        with the new token already in place.
        """

        spec = RequestSpec(
            "POST",
            "account/login-api",
            parameters={"Email": email, "ApiKey": api_key},
            headers=self._public_headers(),
        )
        return self._dispatch(spec, on_complete, authenticated=False, transform=self._save_token)

    # create

    def create_by_url(
        self,
        url: str,
        options: Optional[CallbackOptions] = None,
        on_complete: Optional[CompletionHandler] = None,
    ) -> CloudRequest:
        """Start a scan of the document at `url`."""

        spec = RequestSpec(
            "POST",
            self._route("create-by-url"),
            parameters={"Url": str(url)},
            headers=self._create_headers(options),
        )
        return self._dispatch(spec, on_complete)

    def create_by_text(
        self,
        text: str,
        options: Optional[CallbackOptions] = None,
        on_complete: Optional[CompletionHandler] = None,
    ) -> CloudRequest:
        """Start a scan of `text`, sent as a UTF-8 text/plain body."""

        spec = RequestSpec(
            "POST",
            self._route("create-by-text"),
            headers=merge_headers(self._create_headers(options), {CONTENT_TYPE: TEXT_CONTENT_TYPE}),
            body=text.encode("utf-8"),
        )
        return self._dispatch(spec, on_complete)

    def create_by_file(
        self,
        file: FileInput,
        language: str = DEFAULT_LANGUAGE,
        options: Optional[CallbackOptions] = None,
        on_complete: Optional[CompletionHandler] = None,
    ) -> CloudRequest:
        """Start a scan of a document file (multipart upload)."""

        return self._upload("create-by-file", file, language, options, on_complete)

    def create_by_ocr(
        self,
        file: FileInput,
        language: str = DEFAULT_LANGUAGE,
        options: Optional[CallbackOptions] = None,
        on_complete: Optional[CompletionHandler] = None,
    ) -> CloudRequest:
        """Start a scan of an image; the vendor OCRs it in `language`."""

        return self._upload("create-by-file-ocr", file, language, options, on_complete)

    def _upload(
        self,
        action: str,
        file: FileInput,
        language: str,
        options: Optional[CallbackOptions],
        on_complete: Optional[CompletionHandler],
    ) -> CloudRequest:
        if isinstance(file, MultipartFile):
            upload = file
        else:
            upload = MultipartFile.from_path(os.fspath(file), self.config.max_upload_bytes)
        boundary, body = encode_multipart(upload)

        headers = merge_headers(
            self._create_headers(options),
            {"Accept": "application/json", CONTENT_TYPE: multipart_content_type(boundary)},
        )
        spec = RequestSpec(
            "POST",
            self._route(action),
            headers=headers,
            body=body,
            query={"language": language or DEFAULT_LANGUAGE},
        )
        return self._dispatch(spec, on_complete)

    # processes

    def status(self, process_id: str, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        """Scan progress for a process."""

        spec = RequestSpec("GET", self._route(_require_id(process_id), "status"), headers=self._auth_headers())
        return self._dispatch(spec, on_complete)

    def result(self, process_id: str, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        """Scan results for a completed process."""

        spec = RequestSpec("GET", self._route(_require_id(process_id), "result"), headers=self._auth_headers())
        return self._dispatch(spec, on_complete)

    def delete(self, process_id: str, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        """Delete a process. Only completed processes can be deleted."""

        spec = RequestSpec("DELETE", self._route(_require_id(process_id), "delete"), headers=self._auth_headers())
        return self._dispatch(spec, on_complete)

    def processes_list(self, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        """All active processes of the account."""

        spec = RequestSpec("GET", self._route("list"), headers=self._auth_headers())
        return self._dispatch(spec, on_complete)

    def count_credits(self, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        spec = RequestSpec("GET", self._route("count-credits"), headers=self._auth_headers())
        return self._dispatch(spec, on_complete)

    # public metadata

    def languages_list(self, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        """Languages supported by create_by_ocr."""

        spec = RequestSpec("GET", "miscellaneous/ocr-languages-list", headers=self._public_headers())
        return self._dispatch(spec, on_complete, authenticated=False)

    def supported_file_types(self, on_complete: Optional[CompletionHandler] = None) -> CloudRequest:
        spec = RequestSpec("GET", "miscellaneous/supported-file-types", headers=self._public_headers())
        return self._dispatch(spec, on_complete, authenticated=False)
