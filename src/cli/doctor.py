"""Doctor command: configuration, connectivity and discovery checks against Strapi."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import describe_http_error
from cli.ui_components import build_content_types_table, describe_credentials
from core.config import AppSettings, write_user_env_vars
from core.domain.models import CredentialMode
from core.errors import StrapiAdapterError
from core.services.strapi_service import StrapiService, build_service

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console(stderr=True)

HEALTH_PATH = "/_health"


async def _diagnose(service: StrapiService) -> dict[str, Any]:
    report: dict[str, Any] = {}
    try:
        try:
            response = await service.client.get(HEALTH_PATH)
            report["http"] = (response.status_code < 500, f"HTTP {response.status_code}")
        except httpx.HTTPError as exc:
            report["http"] = (False, describe_http_error(exc))
            return report

        if service.settings.has_admin_credentials:
            ok = await service.authenticator.login(CredentialMode.ADMIN_SESSION)
            report["admin"] = (ok, "Logged in" if ok else "Login rejected, check email/password")

        try:
            report["content_types"] = await service.list_content_types()
        except StrapiAdapterError as exc:
            report["discovery_error"] = f"{exc.kind.value}: {exc.detail}"
    finally:
        await service.aclose()
    return report


@app.command()
def run() -> None:
    """Run baseline diagnostics against the configured Strapi instance."""

    settings = AppSettings()

    table = Table(title="strapi-mcp Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("Strapi URL", "OK", settings.url)
    for name, status, detail in describe_credentials(settings):
        table.add_row(name, status, detail)

    try:
        service = build_service(settings)
    except StrapiAdapterError as exc:
        table.add_row("Validation rules", "FAIL", exc.detail)
        _console.print(table)
        raise typer.Exit(code=1)

    report = asyncio.run(_diagnose(service))

    ok_http, detail_http = report["http"]
    table.add_row("HTTP connectivity", "OK" if ok_http else "FAIL", detail_http)
    if "admin" in report:
        ok_admin, detail_admin = report["admin"]
        table.add_row("Admin login", "OK" if ok_admin else "FAIL", detail_admin)
    if "discovery_error" in report:
        table.add_row("Content types", "FAIL", report["discovery_error"])
    elif "content_types" in report:
        table.add_row("Content types", "OK", f"{len(report['content_types'])} found")

    _console.print(table)

    if report.get("content_types"):
        _console.print(build_content_types_table(report["content_types"]))

    if not ok_http:
        raise typer.Exit(code=1)


@app.command()
def setup() -> None:
    """Interactive setup (stores config in the user config .env)."""

    url = typer.prompt("Strapi URL", default="http://localhost:1337", show_default=True).strip()
    api_token = typer.prompt("API token (blank to skip)", default="", show_default=False, hide_input=True).strip()
    admin_email = typer.prompt("Admin email (blank to skip)", default="", show_default=False).strip()
    admin_password = ""
    if admin_email:
        admin_password = typer.prompt("Admin password", hide_input=True).strip()

    if not api_token and not admin_email:
        raise typer.BadParameter("an API token or admin credentials are required")

    values = {"STRAPI_URL": url}
    if api_token:
        values["STRAPI_API_TOKEN"] = api_token
    if admin_email:
        values["STRAPI_ADMIN_EMAIL"] = admin_email
        values["STRAPI_ADMIN_PASSWORD"] = admin_password

    env_path = write_user_env_vars(values)
    _console.print(f"[green]Saved Strapi config to:[/green] {env_path}")
