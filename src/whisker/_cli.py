"""Whisker CLI — whisker dev / whisker build.

Entry point for the ``whisker`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the whisker CLI."""
    parser = argparse.ArgumentParser(
        prog="whisker",
        description="Query watcher for content-reactive sites.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # whisker dev
    dev_parser = subparsers.add_parser(
        "dev",
        help="Watch templates and reconcile queries on change",
    )
    dev_parser.add_argument("root", nargs="?", default=".", help="Site root directory")
    dev_parser.add_argument(
        "--debounce-ms",
        type=int,
        default=None,
        help="Quiet period before recompiling (default: from config, 100)",
    )

    # whisker build
    build_parser = subparsers.add_parser(
        "build",
        help="Reconcile queries once without watching",
    )
    build_parser.add_argument("root", nargs="?", default=".", help="Site root directory")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from whisker import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from whisker.app import build, dev

    if args.command == "dev":
        dev(root=args.root, debounce_ms=args.debounce_ms)
    elif args.command == "build":
        build(root=args.root)


if __name__ == "__main__":
    main()
