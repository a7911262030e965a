"""Kida environment setup and app binding.

Creates a kida Environment from lazuli's AppConfig and binds
user-registered filters and globals. The environment is created
once during App._freeze() and shared by every request.
"""

from collections.abc import Callable, Mapping
from typing import Any

from kida import ChoiceLoader, Environment, FileSystemLoader

from lazuli.config import AppConfig
from lazuli.templating.returns import Template
from lazuli.util import time_ago_in_words, to_json

BUILTIN_FILTERS: dict[str, Callable[..., Any]] = {
    "time_ago": time_ago_in_words,
    "to_json": to_json,
}


def create_environment(
    config: AppConfig,
    filters: Mapping[str, Callable[..., Any]],
    globals_: Mapping[str, Any],
) -> Environment:
    """Create a kida Environment from app configuration.

    Called once during ``App._freeze()``. The returned environment
    is immutable for the lifetime of the app.
    """
    loader = ChoiceLoader([FileSystemLoader(str(config.template_dir))])
    env = Environment(
        loader=loader,
        autoescape=config.autoescape,
        auto_reload=config.debug,
    )

    env.update_filters(BUILTIN_FILTERS)

    # User-defined filters may override built-ins
    if filters:
        env.update_filters(dict(filters))

    for name, value in globals_.items():
        env.add_global(name, value)

    return env


def render_template(env: Environment, tpl: Template, view_vars: Mapping[str, Any]) -> str:
    """Render a full template to string."""
    template = env.get_template(tpl.name)
    return template.render({**view_vars, **tpl.context})


def render_layout(
    env: Environment,
    name: str,
    inner: str,
    view_vars: Mapping[str, Any],
) -> str:
    """Render layout template *name* with *inner* as its ``content`` block."""
    template = env.get_template(name)
    return template.render_with_blocks({"content": inner}, **view_vars)
