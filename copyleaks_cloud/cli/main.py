from __future__ import annotations

import argparse
import logging
import sys
from typing import List

from copyleaks_cloud.cli.client_cmds import register_client_commands
from copyleaks_cloud.core.errors import ConfigurationError, TokenStoreError
from copyleaks_cloud.models import ProductType


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="copyleaks-cloud", description="Copyleaks cloud API client")
    p.add_argument(
        "--product",
        choices=[t.value for t in ProductType],
        default=None,
        help="Product type (default: $COPYLEAKS_PRODUCT or businesses)",
    )
    p.add_argument("--sandbox", action="store_true", help="Send requests in sandbox mode")
    p.add_argument(
        "--token-file",
        default=None,
        help="Access token record (default: $COPYLEAKS_TOKEN_FILE or ~/.copyleaks/token.json)",
    )
    p.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (stderr)",
    )

    sub = p.add_subparsers(dest="cmd", required=True)
    register_client_commands(sub)
    return p


def main(argv: List[str] | None = None) -> int:
    """CLI entry."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return int(args.func(args))
    except (ConfigurationError, TokenStoreError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
