"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.discovery import RECIPES_LOAD_FAILED, list_recipes
from adapters.http_client import IfcPipelineClient
from core.config import AppSettings, get_user_env_file
from core.errors import IfcPipelineError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_api(settings: AppSettings) -> list[tuple[str, bool, str]]:
    checks: list[tuple[str, bool, str]] = []
    try:
        async with IfcPipelineClient(settings.credential(), settings) as api:
            try:
                await api.health()
                checks.append(("API health", True, f"{settings.base_url}/health"))
            except IfcPipelineError as exc:
                checks.append(("API health", False, str(exc)))
                return checks

            options = await list_recipes(api)
            failed = len(options) == 1 and options[0].label == RECIPES_LOAD_FAILED
            detail = (options[0].description or "") if failed else f"{len(options)} recipes"
            checks.append(("Recipe listing", not failed, detail))
    except IfcPipelineError as exc:
        checks.append(("API client", False, str(exc)))
    return checks


@app.command()
def run(ctx: typer.Context) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = ctx.obj if isinstance(ctx.obj, AppSettings) else AppSettings()

    table = Table(title="IFC Pipeline Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("Base URL", "OK", settings.base_url)
    has_key = settings.api_key is not None and bool(settings.api_key.get_secret_value())
    table.add_row("API key", "OK" if has_key else "MISSING", "set" if has_key else "IFCPIPE_API_KEY is not set")
    table.add_row("User config", "INFO", str(get_user_env_file()))

    # Connectivity (best-effort)
    ok_all = has_key
    if has_key:
        for name, ok, detail in asyncio.run(_check_api(settings)):
            table.add_row(name, "OK" if ok else "FAIL", detail)
            ok_all = ok_all and ok

    _console.print(table)

    if not has_key:
        _console.print("\n[yellow]Note:[/yellow] export IFCPIPE_API_KEY or pass --api-key before running operations.")
    if not ok_all:
        raise typer.Exit(code=1)
