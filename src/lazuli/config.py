"""Application configuration.

AppConfig is a frozen dataclass: fixed after creation and typed, with no
string-key lookups.

Named environments sit on top of it. Register overrides once at import
time and pick one by name (or via ``LAZULI_ENV``)::

    configure("development", port=8080, debug=True)
    configure(["production", "staging"], show_errors=False)

    app = App(get_config())
"""

import os
import threading
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

ENV_VAR = "LAZULI_ENV"
DEFAULT_ENVIRONMENT = "development"


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, secret_key="s3cr3t")
    """

    environment: str = DEFAULT_ENVIRONMENT

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Reload, development only (needs debug=True)
    reload_include: tuple[str, ...] = ()
    reload_dirs: tuple[str, ...] = ()

    # Security / sessions
    secret_key: str = ""
    session_name: str = "lazuli_session"

    # Templates
    template_dir: str | Path = "templates"
    autoescape: bool = True

    # Rendering. ``layout`` None means the built-in layout, False disables it.
    layout: Any = None
    error_page: Any = None
    views_prefix: str = "views"
    actions_prefix: str = "actions"

    # Fatal errors show message and trace. Turn off in production.
    show_errors: bool = True


_lock = threading.Lock()
_overrides: dict[str, dict[str, Any]] = {}


def configure(environments: str | Sequence[str], /, **values: Any) -> None:
    """Register config overrides for one or more environment names.

    Repeated calls merge; later values win.

    Raises ``TypeError`` for names that are not ``AppConfig`` fields.
    """
    known = {f.name for f in fields(AppConfig)}
    unknown = set(values) - known
    if unknown:
        msg = f"Unknown config field(s): {', '.join(sorted(unknown))}"
        raise TypeError(msg)

    names = [environments] if isinstance(environments, str) else list(environments)
    with _lock:
        for name in names:
            _overrides.setdefault(name, {}).update(values)


def get_config(environment: str | None = None) -> AppConfig:
    """Return the ``AppConfig`` for *environment*.

    Falls back to the ``LAZULI_ENV`` environment variable, then
    ``"development"``. Unregistered environments get the defaults.
    """
    name = environment or os.environ.get(ENV_VAR) or DEFAULT_ENVIRONMENT
    with _lock:
        values = dict(_overrides.get(name, {}))
    return replace(AppConfig(), **{"environment": name, **values})


def reset_config() -> None:
    """Forget every registered override (test helper)."""
    with _lock:
        _overrides.clear()
