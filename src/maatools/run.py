"""Top-level entry point for the control server."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from typing import List, Optional

from . import __version__
from .backends import BACKENDS
from .config import MaaToolsSettings
from .server import run_async


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="maatools-server",
        description="Remote-control protocol server for automation agents",
    )
    parser.add_argument("--host", help="Address to bind (default: $MAATOOLS_HOST)")
    parser.add_argument(
        "--port", type=int, help="TCP port, 0 for any (default: $MAATOOLS_PORT)"
    )
    parser.add_argument("--backend", choices=BACKENDS, help="Collaborator backend")
    parser.add_argument(
        "--idle-timeout",
        type=float,
        dest="idle_timeout_seconds",
        help="Close connections idle for this many seconds",
    )
    parser.add_argument("--window-label", help="Label the bound port is appended to")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> MaaToolsSettings:
    """Apply command line overrides on top of the environment."""

    overrides = {
        name: value
        for name, value in (
            ("host", args.host),
            ("port", args.port),
            ("backend", args.backend),
            ("idle_timeout_seconds", args.idle_timeout_seconds),
            ("window_label", args.window_label),
        )
        if value is not None
    }
    return dataclasses.replace(MaaToolsSettings.from_env(), **overrides)


def main(argv: Optional[List[str]] = None) -> None:
    """Console entry point."""

    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        asyncio.run(run_async(build_settings(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
