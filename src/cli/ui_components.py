"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en `serve` y `doctor`.
"""

from __future__ import annotations

from typing import Any, Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import AppSettings


def print_banner(console: Console, settings: AppSettings) -> None:
    """Imprime el banner de arranque (a stderr: stdout es el canal MCP)."""

    title = Text("strapi-mcp", style="bold cyan")
    subtitle = Text(f"Strapi • {settings.url}", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def describe_credentials(settings: AppSettings) -> list[tuple[str, str, str]]:
    """Filas (modo, estado, detalle) con las credenciales configuradas."""

    rows: list[tuple[str, str, str]] = []
    if settings.has_api_token:
        rows.append(("API token", "OK", "Public API (/api/...)"))
    elif settings.api_token:
        rows.append(("API token", "FAIL", "Placeholder value, set a real token"))
    else:
        rows.append(("API token", "MISSING", "Public API falls back to anonymous reads"))

    if settings.has_admin_credentials:
        rows.append(("Admin session", "OK", f"{settings.admin_email}"))
    else:
        rows.append(("Admin session", "OPTIONAL", "Schema/component tools disabled"))

    rows.append(("Dev mode", "ON" if settings.dev_mode else "OFF", "Schema mutations"))
    return rows


def build_content_types_table(content_types: Iterable[dict[str, Any]]) -> Table:
    table = Table(title="Content Types")
    table.add_column("UID", style="cyan", no_wrap=True)
    table.add_column("Display name", style="white")
    table.add_column("Description", style="dim")
    for item in content_types:
        table.add_row(
            str(item.get("uid", "")),
            str(item.get("displayName", "")),
            str(item.get("description", "")),
        )
    return table
