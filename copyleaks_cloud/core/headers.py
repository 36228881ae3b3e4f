from __future__ import annotations

import locale
import logging
import os
from functools import lru_cache
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional

from ..models import CallbackOptions

if TYPE_CHECKING:
    from ..auth.token import AccessToken

log = logging.getLogger("copyleaks_cloud.headers")

SDK_VERSION = "0.3.0"

AUTHORIZATION = "Authorization"
CACHE_CONTROL = "Cache-Control"
CONTENT_TYPE = "Content-Type"
USER_AGENT = "User-Agent"
ACCEPT_LANGUAGE = "Accept-Language"

SANDBOX_MODE = "copyleaks-sandbox-mode"
ALLOW_PARTIAL_SCAN = "copyleaks-allow-partial-scan"
HTTP_CALLBACK = "copyleaks-http-callback"
EMAIL_CALLBACK = "copyleaks-email-callback"
CLIENT_CUSTOM_MESSAGE = "copyleaks-client-custom-message"

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

MAX_LANGUAGES = 6


def _normalize_language_tag(raw: str) -> Optional[str]:
    tag = (raw or "").strip()
    tag = tag.split(".", 1)[0].split("@", 1)[0]
    if not tag or tag in {"C", "POSIX"}:
        return None
    return tag.replace("_", "-")


def preferred_languages(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """User locale preference list, most preferred first.

    Order: LANGUAGE (colon-separated), LC_ALL, LC_MESSAGES, LANG, then the
    process locale. Falls back to ["en"].
    """

    env = os.environ if environ is None else environ
    candidates: List[str] = []
    candidates.extend((env.get("LANGUAGE") or "").split(":"))
    for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
        candidates.append(env.get(var) or "")
    if environ is None:
        try:
            candidates.append(locale.getlocale()[0] or "")
        except ValueError:
            pass

    out: List[str] = []
    for c in candidates:
        tag = _normalize_language_tag(c)
        if tag and tag not in out:
            out.append(tag)
    return out or ["en"]


def build_accept_language(languages: Iterable[str]) -> str:
    """Format languages as `tag;q=1.0, tag;q=0.9, ...` (at most six)."""

    entries = []
    for index, tag in enumerate(list(languages)[:MAX_LANGUAGES]):
        quality = 1.0 - index * 0.1
        entries.append(f"{tag};q={quality:.1f}")
    return ", ".join(entries)


@lru_cache(maxsize=1)
def accept_language() -> str:
    """Accept-Language value, computed once per process."""

    return build_accept_language(preferred_languages())


@lru_cache(maxsize=1)
def default_headers() -> Mapping[str, str]:
    """Read-only default header template."""

    return MappingProxyType(
        {
            CACHE_CONTROL: "no-cache",
            CONTENT_TYPE: JSON_CONTENT_TYPE,
            USER_AGENT: f"copyleaks-cloud-python/{SDK_VERSION}",
            ACCEPT_LANGUAGE: accept_language(),
        }
    )


def merge_headers(*layers: Optional[Mapping[str, Optional[str]]]) -> Dict[str, str]:
    """Merge header layers left to right into a new dict.

    Names compare case-insensitively; a later layer replaces an earlier value
    and its spelling of the name. `None` values are skipped.
    """

    out: Dict[str, str] = {}
    spelled: Dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            if value is None:
                continue
            key = name.lower()
            if key in spelled:
                del out[spelled[key]]
            out[name] = str(value)
            spelled[key] = name
    return out


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""

    wanted = name.lower()
    for k, v in headers.items():
        if k.lower() == wanted:
            return v
    return None


def option_headers(options: Optional[CallbackOptions], sandbox: bool) -> Dict[str, str]:
    """Feature-flag headers; each flag appears only when set."""

    out: Dict[str, str] = {}
    if sandbox:
        out[SANDBOX_MODE] = "true"
    if options is None:
        return out
    if options.allow_partial_scan:
        out[ALLOW_PARTIAL_SCAN] = "true"
    if options.http_callback:
        out[HTTP_CALLBACK] = options.http_callback
    if options.email_callback:
        out[EMAIL_CALLBACK] = options.email_callback
    if options.client_custom_message:
        out[CLIENT_CUSTOM_MESSAGE] = options.client_custom_message
    return out


class HeaderBuilder:
    """Compose request headers from an immutable template.

    Layers, lowest precedence first:
      defaults < base < Authorization < feature flags < overrides

    Every call returns a new dict; neither the template nor the caller's
    mappings are modified.

    Security notes:
    - Expired or missing tokens produce no Authorization header rather than a
      malformed one.
    - Header values are never logged.
    """

    def __init__(self, defaults: Optional[Mapping[str, str]] = None):
        template = default_headers() if defaults is None else defaults
        self._defaults: Mapping[str, str] = MappingProxyType(dict(template))

    @property
    def defaults(self) -> Mapping[str, str]:
        return self._defaults

    def build(
        self,
        base: Optional[Mapping[str, str]] = None,
        token: Optional[AccessToken] = None,
        options: Optional[CallbackOptions] = None,
        sandbox: bool = False,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        auth: Dict[str, str] = {}
        if token is not None:
            if token.is_expired():
                log.warning("access_token_expired", extra={"expires_at": token.expires_at})
            else:
                auth[AUTHORIZATION] = token.header_value()

        return merge_headers(
            self._defaults,
            base,
            auth,
            option_headers(options, sandbox),
            overrides,
        )
