"""Development server: a single pounce worker serving a live App."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lazuli.app import App

logger = logging.getLogger("lazuli.server")


def run_dev_server(
    app: App,
    host: str,
    port: int,
    *,
    reload: bool = True,
    reload_include: tuple[str, ...] = (),
    reload_dirs: tuple[str, ...] = (),
    app_path: str | None = None,
) -> None:
    """Serve *app* on ``host:port`` until interrupted.

    The app is compiled before the first connection, so registration
    errors surface here rather than on the first request. With *app_path*
    (``"module:attribute"``) pounce reimports the app after each reload;
    without it the reloader restarts around the same object.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    app._ensure_frozen()
    logger.info(
        "Serving %d routes on http://%s:%d (reload %s)",
        len(app.router.routes),
        host,
        port,
        "on" if reload else "off",
    )
    config = ServerConfig(
        host=host,
        port=port,
        workers=1,
        reload=reload,
        reload_include=reload_include,
        reload_dirs=reload_dirs,
    )
    Server(config, app, app_path=app_path).run()
