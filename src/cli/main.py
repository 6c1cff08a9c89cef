"""CLI principal (Typer).

`strapi-mcp serve` arranca el servidor MCP sobre stdio. stdout queda reservado
al protocolo; banner, logs y errores van a stderr.
"""

from __future__ import annotations

import logging
from typing import NoReturn, Optional

import typer
from pydantic import ValidationError
from pydantic_settings import SettingsError

from adapters.mcp_server import build_server
from cli import doctor
from cli.logging_setup import configure_logging, stderr_console
from cli.ui_components import print_banner
from core.config import AppSettings
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="MCP server for Strapi CMS: content types, entries, relations and media.",
)
app.add_typer(doctor.app, name="doctor")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        serve(log_level=None, banner=True)


def _config_failure(detail: str) -> NoReturn:
    stderr_console.print(f"[red]Configuration error:[/red] {detail}")
    stderr_console.print("Run `strapi-mcp doctor setup` or set STRAPI_* environment variables.")
    raise typer.Exit(code=1)


@app.command()
def serve(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides STRAPI_LOG_LEVEL."),
    banner: bool = typer.Option(True, "--banner/--no-banner", help="Print the startup banner on stderr."),
) -> None:
    """Start the MCP server on stdio."""

    try:
        settings = AppSettings()
        configure_logging(log_level or settings.log_level)
        settings.require_credentials()
        server = build_server(settings)
    except ConfigurationError as exc:
        _config_failure(exc.detail)
    except (ValidationError, SettingsError) as exc:
        _config_failure(str(exc))

    if banner:
        print_banner(stderr_console, settings)

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception:
        logger.exception("Fatal error in MCP server")
        raise typer.Exit(code=1)


def run() -> None:
    app()
