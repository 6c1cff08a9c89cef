"""Logging de la aplicación (stdlib `logging` + `rich`).

stdout es el canal del protocolo MCP (stdio), así que todo el logging va a
stderr.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

stderr_console = Console(stderr=True)


def configure_logging(level: str = "INFO") -> None:
    """Configura el root logger una sola vez (idempotente)."""

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=stderr_console,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(numeric)
    # httpx registra cada request en INFO.
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
