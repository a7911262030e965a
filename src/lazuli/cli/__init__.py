"""Lazuli CLI: dev server and route listing.

Entry point registered as ``lazuli`` in ``pyproject.toml``::

    [project.scripts]
    lazuli = "lazuli.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``lazuli`` command."""
    parser = argparse.ArgumentParser(
        prog="lazuli",
        description="Lazuli: a small web framework of routes, actions and widgets.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- lazuli run -------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Start the development server")
    run_parser.add_argument("app", help="Import string (e.g. myapp:app)")
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    run_parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload even when the app runs in debug mode",
    )

    # -- lazuli routes ----------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument("app", help="Import string (e.g. myapp:app)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from lazuli.cli._run import run_server

        run_server(args)
    elif args.command == "routes":
        from lazuli.cli._routes import run_routes

        run_routes(args)
