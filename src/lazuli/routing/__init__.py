"""Routing: an ordered route table compiled into a trie.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes.
"""

from lazuli.routing.route import Route, RouteMatch
from lazuli.routing.router import Router, parse_path

__all__ = ["Route", "RouteMatch", "Router", "parse_path"]
