"""
UAMI Demo CLI.

Usage:
    uami-demo serve            # Start the web service
    uami-demo config           # Print the seeded runtime config as JSON
    uami-demo version          # Show version
"""

from __future__ import annotations

import argparse
import json
import logging


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="uami-demo",
        description="Key Vault secret retrieval with user-assigned managed identities.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--settings", type=str, help="Path to a YAML settings file")

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the web service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: settings)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: settings)")

    # config
    subparsers.add_parser("config", help="Print the seeded runtime config")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from uami_demo import __version__

        print(f"uami-demo {__version__}")
        return 0

    if args.command == "serve":
        return _cmd_serve(args)
    elif args.command == "config":
        return _cmd_config(args)
    else:
        parser.print_help()
        return 0


def _load(args: argparse.Namespace):
    from pathlib import Path

    from uami_demo.config import load_settings

    return load_settings(Path(args.settings) if args.settings else None)


def _cmd_config(args: argparse.Namespace) -> int:
    from uami_demo.runtime_config import RuntimeConfigState

    settings = _load(args)
    snapshot = RuntimeConfigState.from_settings(settings).snapshot()
    print(json.dumps(snapshot.to_dict(), indent=2))
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from uami_demo.app import create_app

    settings = _load(args)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    host = args.host or settings.host
    port = args.port or settings.port

    print(f"Starting UAMI Demo ({settings.environment}) on {host}:{port}...")
    uvicorn.run(create_app(settings), host=host, port=port)
    return 0
