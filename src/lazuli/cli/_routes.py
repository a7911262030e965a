"""``lazuli routes``: print the route table of an app."""

import argparse

from lazuli.cli._resolve import resolve_or_exit
from lazuli.routing.route import Route


def handler_label(route: Route) -> str:
    """Display name of a route's handler."""
    handler = route.handler
    # Handlers of included apps wrap the original
    handler = getattr(handler, "handler", handler)
    name = getattr(handler, "__name__", None)
    if name is None:
        action = getattr(handler, "name", None)
        name = f"action {action}" if isinstance(action, str) else type(handler).__name__
    return name


def run_routes(args: argparse.Namespace) -> None:
    """Print METHOD, PATH, NAME and HANDLER for every route, in registration order."""
    app = resolve_or_exit(args)
    routes = app.router.routes
    if not routes:
        print("No routes registered.")
        return

    rows = [
        (", ".join(sorted(route.methods)), route.path, route.name or "", handler_label(route))
        for route in routes
    ]
    headers = ("METHOD", "PATH", "NAME", "HANDLER")
    widths = [max(len(header), *(len(row[i]) for row in rows)) for i, header in enumerate(headers[:3])]

    fmt = f"{{:<{widths[0]}}}  {{:<{widths[1]}}}  {{:<{widths[2]}}}  {{}}"
    print(fmt.format(*headers))
    print("-" * min(sum(widths) + 6 + max(len(row[3]) for row in rows), 80))
    for row in rows:
        print(fmt.format(*row))
