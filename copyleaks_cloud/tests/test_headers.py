from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from copyleaks_cloud.auth.token import AccessToken
from copyleaks_cloud.core.headers import (
    HeaderBuilder,
    build_accept_language,
    default_headers,
    get_header,
    merge_headers,
    preferred_languages,
)
from copyleaks_cloud.models import CallbackOptions


def _content_types(headers):
    return [k for k in headers if k.lower() == "content-type"]


def test_default_headers_template_is_read_only():
    d = default_headers()
    assert d["Content-Type"] == "application/json"
    assert d["Cache-Control"] == "no-cache"
    assert d["User-Agent"].startswith("copyleaks-cloud-python/")
    assert "q=1.0" in d["Accept-Language"]
    with pytest.raises(TypeError):
        d["X-New"] = "1"


def test_builds_do_not_share_state():
    hb = HeaderBuilder()
    a = hb.build(options=CallbackOptions(http_callback="https://cb.example/{PID}"))
    b = hb.build(options=CallbackOptions(email_callback="me@example.com"))

    assert a["copyleaks-http-callback"] == "https://cb.example/{PID}"
    assert "copyleaks-email-callback" not in a
    assert b["copyleaks-email-callback"] == "me@example.com"
    assert "copyleaks-http-callback" not in b

    a["X-Only-A"] = "1"
    assert "X-Only-A" not in b
    assert "X-Only-A" not in hb.build()
    assert "X-Only-A" not in hb.defaults


def test_base_mapping_is_not_mutated():
    base = {"Accept": "application/json"}
    out = HeaderBuilder().build(base=base, sandbox=True)
    assert base == {"Accept": "application/json"}
    assert out["Accept"] == "application/json"


def test_flags_only_when_set():
    hb = HeaderBuilder()
    plain = hb.build(options=CallbackOptions())
    assert not [k for k in plain if k.startswith("copyleaks-")]

    full = hb.build(
        options=CallbackOptions(
            http_callback="https://cb",
            email_callback="a@b.c",
            client_custom_message="hello",
            allow_partial_scan=True,
        ),
        sandbox=True,
    )
    assert full["copyleaks-sandbox-mode"] == "true"
    assert full["copyleaks-allow-partial-scan"] == "true"
    assert full["copyleaks-http-callback"] == "https://cb"
    assert full["copyleaks-email-callback"] == "a@b.c"
    assert full["copyleaks-client-custom-message"] == "hello"


def test_authorization_from_token():
    hb = HeaderBuilder()
    assert get_header(hb.build(), "authorization") is None
    assert hb.build(token=AccessToken("abc"))["Authorization"] == "Bearer abc"

    expired = AccessToken("old", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
    assert get_header(hb.build(token=expired), "Authorization") is None


def test_overrides_replace_case_insensitively():
    out = HeaderBuilder().build(overrides={"content-type": "text/plain; charset=utf-8"})
    assert _content_types(out) == ["content-type"]
    assert out["content-type"] == "text/plain; charset=utf-8"


def test_merge_headers_later_layer_wins_and_skips_none():
    out = merge_headers({"A": "1", "B": "2"}, None, {"a": "3", "B": None})
    assert out == {"a": "3", "B": "2"}


def test_accept_language_quality_values():
    assert build_accept_language(["en-US", "fr", "de"]) == "en-US;q=1.0, fr;q=0.9, de;q=0.8"
    langs = ["l%d" % i for i in range(10)]
    value = build_accept_language(langs)
    assert value.count(";q=") == 6
    assert value.endswith("l5;q=0.5")


def test_preferred_languages_from_environment():
    env = {"LANGUAGE": "fr_FR:en", "LANG": "de_DE.UTF-8", "LC_ALL": "fr_FR.UTF-8"}
    assert preferred_languages(env) == ["fr-FR", "en", "de-DE"]
    assert preferred_languages({"LANG": "C"}) == ["en"]
    assert preferred_languages({}) == ["en"]
