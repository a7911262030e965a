"""``lazuli run``: start the pounce development server."""

import argparse

from lazuli.cli._resolve import resolve_or_exit


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app`` and serve it.

    Auto-reload follows ``config.debug`` unless ``--no-reload`` is given.
    The import string is handed to pounce so reloads reimport the app.
    """
    app = resolve_or_exit(args)
    app._ensure_frozen()

    from lazuli.server.dev import run_dev_server

    run_dev_server(
        app,
        args.host or app.config.host,
        args.port or app.config.port,
        reload=app.config.debug and not args.no_reload,
        reload_include=app.config.reload_include,
        reload_dirs=app.config.reload_dirs,
        app_path=args.app,
    )
