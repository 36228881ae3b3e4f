from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

from copyleaks_cloud.auth.token import AuthTokenProvider, FileTokenStore
from copyleaks_cloud.client.http import CloudRequest
from copyleaks_cloud.cloud import DEFAULT_LANGUAGE, CopyleaksCloud
from copyleaks_cloud.config import load_config
from copyleaks_cloud.core.errors import CopyleaksError
from copyleaks_cloud.models import CallbackOptions
from copyleaks_cloud.utils.json_safe import error_to_jsonable, to_jsonable

DEFAULT_TOKEN_FILE = os.path.join("~", ".copyleaks", "token.json")


def _print_json(obj: Any, stream=None) -> None:
    """Print JSON to stdout."""
    print(json.dumps(to_jsonable(obj), indent=2, sort_keys=True), file=stream or sys.stdout)


def _make_cloud(args: argparse.Namespace) -> CopyleaksCloud:
    """Build a client from CLI flags layered over COPYLEAKS_* env vars.

    Security notes:
    - The token record is encrypted when COPYLEAKS_TOKEN_KEY holds a Fernet key.
    """

    config = load_config(
        product=args.product,
        sandbox=True if args.sandbox else None,
        timeout_seconds=args.timeout,
        token_file=args.token_file,
    )
    token_file = config.token_file or DEFAULT_TOKEN_FILE
    store = FileTokenStore(token_file, encryption_key=os.environ.get("COPYLEAKS_TOKEN_KEY") or None)
    return CopyleaksCloud(config, token_provider=AuthTokenProvider(store))


def _options(args: argparse.Namespace) -> CallbackOptions:
    return CallbackOptions(
        http_callback=args.http_callback,
        email_callback=args.email_callback,
        client_custom_message=args.custom_message,
        allow_partial_scan=bool(args.allow_partial_scan),
    )


def _finish(call: CloudRequest) -> int:
    """Wait for a request and print its JSON; API failures exit with 2."""

    try:
        value = call.result()
    except CopyleaksError as e:
        _print_json(error_to_jsonable(e), stream=sys.stderr)
        return 2
    _print_json(value)
    return 0


def cmd_login(args: argparse.Namespace) -> int:
    """Log in and persist the access token.

    Security notes:
    - The API key is read from COPYLEAKS_API_KEY unless --api-key is given.
    - The token itself is not printed.

    """
    api_key = args.api_key or os.environ.get("COPYLEAKS_API_KEY")
    if not api_key:
        print("error: API key required (--api-key or COPYLEAKS_API_KEY)", file=sys.stderr)
        return 2
    with _make_cloud(args) as cloud:
        try:
            cloud.login(args.email, api_key).result()
        except CopyleaksError as e:
            _print_json(error_to_jsonable(e), stream=sys.stderr)
            return 2
        token = cloud.tokens.current()
        _print_json({"logged_in": True, "expires_at": token.expires_at if token else None})
    return 0


def cmd_create_url(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.create_by_url(args.url, options=_options(args)))


def cmd_create_file(args: argparse.Namespace) -> int:
    """Upload a local document to create-by-file."""
    with _make_cloud(args) as cloud:
        return _finish(cloud.create_by_file(args.file, language=args.language, options=_options(args)))


def cmd_create_ocr(args: argparse.Namespace) -> int:
    """Upload a local image to create-by-file-ocr."""
    with _make_cloud(args) as cloud:
        return _finish(cloud.create_by_ocr(args.file, language=args.language, options=_options(args)))


def cmd_create_text(args: argparse.Namespace) -> int:
    """Scan text from --text or a UTF-8 file ('-' reads stdin)."""
    if args.text is not None:
        text = args.text
    elif args.file == "-":
        text = sys.stdin.read()
    else:
        with open(args.file, "r", encoding="utf-8") as f:
            text = f.read()
    with _make_cloud(args) as cloud:
        return _finish(cloud.create_by_text(text, options=_options(args)))


def cmd_status(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.status(args.process_id))


def cmd_result(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.result(args.process_id))


def cmd_delete(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.delete(args.process_id))


def cmd_list(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.processes_list())


def cmd_credits(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.count_credits())


def cmd_ocr_languages(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.languages_list())


def cmd_file_types(args: argparse.Namespace) -> int:
    with _make_cloud(args) as cloud:
        return _finish(cloud.supported_file_types())


def _add_callback_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--http-callback", default=None, help="URL called on completion ({PID} = process id)")
    p.add_argument("--email-callback", default=None, help="Email notified on completion")
    p.add_argument("--custom-message", default=None, help="Client custom message echoed back")
    p.add_argument(
        "--allow-partial-scan", action="store_true", help="Scan what remaining credits allow"
    )


def register_client_commands(sub: argparse._SubParsersAction) -> None:
    """Register one sub-command per API operation."""

    lg = sub.add_parser("login", help="Log in and store the access token")
    lg.add_argument("email", help="Account email")
    lg.add_argument("--api-key", default=None, help="API key (default: $COPYLEAKS_API_KEY)")
    lg.set_defaults(func=cmd_login)

    cu = sub.add_parser("create-url", help="Scan a document by URL")
    cu.add_argument("url", help="Public URL of the document")
    _add_callback_flags(cu)
    cu.set_defaults(func=cmd_create_url)

    cf = sub.add_parser("create-file", help="Upload a document for scanning")
    cf.add_argument("file", help="Path to local file")
    cf.add_argument("--language", default=DEFAULT_LANGUAGE, help="Document language")
    _add_callback_flags(cf)
    cf.set_defaults(func=cmd_create_file)

    co = sub.add_parser("create-ocr", help="Upload an image for OCR + scanning")
    co.add_argument("file", help="Path to local image")
    co.add_argument("--language", default=DEFAULT_LANGUAGE, help="OCR language")
    _add_callback_flags(co)
    co.set_defaults(func=cmd_create_ocr)

    ct = sub.add_parser("create-text", help="Scan plain text")
    src = ct.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", default=None, help="Text to scan")
    src.add_argument("--file", default=None, help="UTF-8 text file ('-' for stdin)")
    _add_callback_flags(ct)
    ct.set_defaults(func=cmd_create_text)

    for name, func, help_text in (
        ("status", cmd_status, "Scan progress of a process"),
        ("result", cmd_result, "Scan results of a process"),
        ("delete", cmd_delete, "Delete a completed process"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("process_id", help="Process id returned by a create command")
        p.set_defaults(func=func)

    ls = sub.add_parser("list", help="List active processes")
    ls.set_defaults(func=cmd_list)

    cr = sub.add_parser("credits", help="Remaining credits")
    cr.set_defaults(func=cmd_credits)

    ol = sub.add_parser("ocr-languages", help="Languages supported by OCR scans")
    ol.set_defaults(func=cmd_ocr_languages)

    ft = sub.add_parser("file-types", help="Supported upload file types")
    ft.set_defaults(func=cmd_file_types)
