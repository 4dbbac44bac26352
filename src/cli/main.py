"""Typer CLI for the IFC Pipeline job client.

Every command builds an `OperationRequest` (or a discovery/file call), runs it
through the async core with `asyncio.run` and renders the outcome with Rich.

Exit codes: 0 success, 1 API/job/validation error, 2 polling timeout.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.batch_loader import load_batch_file
from adapters.discovery import fetch_recipes, list_files, list_recipes, sort_recipes
from adapters.file_transfer import download_file, download_from_url, upload_file
from adapters.http_client import IfcPipelineClient
from adapters.json_exporter import export_results_json
from cli import doctor
from cli.ui_components import (
    build_batch_table,
    build_job_panel,
    build_job_status_panel,
    build_options_table,
    build_recipes_table,
)
from core.config import AppSettings
from core.domain.models import JobRun
from core.domain.operations import OperationKind, OperationRequest
from core.errors import IfcPipelineError, JobTimeoutError
from core.services.job_runner import JobRunner
from core.services.operation_runner import get_ifc_json, run_batch, run_operation

T = TypeVar("T")

app = typer.Typer(no_args_is_help=True, help="Run IFC Pipeline operations (convert, clash, diff, patch, ...).")
files_app = typer.Typer(no_args_is_help=True, help="List, upload and download files.")
recipes_app = typer.Typer(no_args_is_help=True, help="Discover IfcPatch recipes.")
csv_app = typer.Typer(no_args_is_help=True, help="IFC <-> CSV export and import.")
ifc2json_app = typer.Typer(no_args_is_help=True, help="IFC to JSON conversion.")
job_app = typer.Typer(no_args_is_help=True, help="Inspect submitted jobs.")

app.add_typer(files_app, name="files")
app.add_typer(recipes_app, name="recipes")
app.add_typer(csv_app, name="csv")
app.add_typer(ifc2json_app, name="ifc2json")
app.add_typer(job_app, name="job")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def _wait_option() -> Any:
    return typer.Option(True, "--wait/--no-wait", help="Poll the job until it finishes.")


def _interval_option() -> Any:
    return typer.Option(None, "--interval", min=0.1, help="Polling interval in seconds.")


def _timeout_option() -> Any:
    return typer.Option(None, "--timeout", min=1.0, help="Polling budget in seconds.")


def _output_option() -> Any:
    return typer.Option(None, "--output", "-o", help="Write the result as JSON to this path.")


def build_client(settings: AppSettings) -> IfcPipelineClient:
    return IfcPipelineClient(settings.credential(), settings)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, rich_tracebacks=False, show_path=False)],
        force=True,
    )


def _settings(ctx: typer.Context) -> AppSettings:
    settings = ctx.obj if isinstance(ctx.obj, AppSettings) else None
    if settings is None:
        settings = AppSettings()
        ctx.obj = settings
    return settings


def _execute(coro_factory: Callable[[], Awaitable[T]]) -> T:
    try:
        return asyncio.run(coro_factory())
    except JobTimeoutError as exc:
        _err_console.print(f"[yellow]Timeout:[/yellow] {exc}")
        raise typer.Exit(code=2) from exc
    except IfcPipelineError as exc:
        _err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _export(payload: Any, output: Optional[Path]) -> None:
    if output is None:
        return
    path = export_results_json(results=payload, output_path=output)
    _console.print(f"[green]Saved result to:[/green] {path}")


def _submit(
    ctx: typer.Context,
    kind: OperationKind,
    parameters: Dict[str, Any],
    *,
    wait: bool,
    interval: Optional[float],
    timeout: Optional[float],
    output: Optional[Path],
) -> None:
    settings = _settings(ctx)
    request = OperationRequest(
        operation=kind,
        parameters={k: v for k, v in parameters.items() if v is not None},
        wait=wait,
        interval_seconds=interval,
        timeout_seconds=timeout,
    )

    async def _run() -> JobRun:
        async with build_client(settings) as api:
            runner = JobRunner(api, policy=settings.polling_policy())
            return await run_operation(runner, request, default_policy=settings.polling_policy())

    run = _execute(_run)
    _console.print(build_job_panel(run, title=kind.value))
    _export(run.to_output(), output)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(None, "--base-url", help="IFC Pipeline base URL (env: IFCPIPE_BASE_URL)."),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="API key (env: IFCPIPE_API_KEY)."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
) -> None:
    overrides: Dict[str, Any] = {}
    if base_url:
        overrides["base_url"] = base_url
    if api_key:
        overrides["api_key"] = api_key
    if log_level:
        overrides["log_level"] = log_level
    settings = AppSettings(**overrides)
    configure_logging(settings.log_level)
    ctx.obj = settings


# --- files -----------------------------------------------------------------


@files_app.command("list")
def files_list(
    ctx: typer.Context,
    extension: Optional[List[str]] = typer.Option(None, "--ext", "-e", help="Accepted extension (repeatable), e.g. .ifc"),
) -> None:
    """List remote files, optionally filtered by extension."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await list_files(api, extension)

    options = _execute(_run)
    _console.print(build_options_table(options, title="Files"))


@files_app.command("upload")
def files_upload(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    file_type: Optional[str] = typer.Option(None, "--type", help="ifc, ids, csv or other (default: by extension)."),
) -> None:
    """Upload a local file."""

    settings = _settings(ctx)
    content = path.read_bytes()

    async def _run():
        async with build_client(settings) as api:
            return await upload_file(api, file_name=path.name, content=content, kind=file_type)

    response = _execute(_run)
    _console.print_json(data=response if response is not None else {})


@files_app.command("download")
def files_download(
    ctx: typer.Context,
    remote_path: str = typer.Argument(..., help="Path of the file on the server."),
    dest: Path = typer.Option(Path("."), "--dest", "-d", help="Destination directory."),
) -> None:
    """Download a remote file through a short-lived download link."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await download_file(api, remote_path)

    downloaded = _execute(_run)
    dest.mkdir(parents=True, exist_ok=True)
    target = dest / downloaded.file_name
    target.write_bytes(downloaded.data)
    _console.print(f"[green]Saved[/green] {target} ({downloaded.size} bytes, {downloaded.mime_type})")


@files_app.command("fetch-url")
def files_fetch_url(ctx: typer.Context, url: str = typer.Argument(...)) -> None:
    """Ask the server to download a file from a URL."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await download_from_url(api, url)

    response = _execute(_run)
    _console.print_json(data=response if response is not None else {})


# --- recipes ---------------------------------------------------------------


@recipes_app.command("list")
def recipes_list(
    ctx: typer.Context,
    builtin: bool = typer.Option(True, "--builtin/--no-builtin"),
    custom: bool = typer.Option(True, "--custom/--no-custom"),
    output: Optional[Path] = _output_option(),
) -> None:
    """List IfcPatch recipes (built-in first, then custom)."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await fetch_recipes(api, include_builtin=builtin, include_custom=custom)

    recipes = sort_recipes(_execute(_run))
    _console.print(build_recipes_table(recipes))
    _export([r.model_dump(mode="json") for r in recipes], output)


@recipes_app.command("options")
def recipes_options(
    ctx: typer.Context,
    show_parameter_count: bool = typer.Option(False, "--param-count"),
) -> None:
    """Print recipe selection options as JSON (never fails)."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await list_recipes(api, show_parameter_count=show_parameter_count)

    options = _execute(_run)
    _console.print_json(data=[o.model_dump() for o in options])


# --- operations ------------------------------------------------------------


@app.command()
def convert(
    ctx: typer.Context,
    input_filename: str = typer.Argument(...),
    output_filename: str = typer.Argument(...),
    include: Optional[str] = typer.Option(None, help="Comma-separated entities to include."),
    exclude: Optional[str] = typer.Option(None, help="Comma-separated entities to exclude."),
    bounds: Optional[str] = typer.Option(None),
    log_file: Optional[str] = typer.Option(None, "--log-file"),
    verbose: Optional[bool] = typer.Option(None, "--verbose/--no-verbose"),
    plan: Optional[bool] = typer.Option(None, "--plan/--no-plan"),
    model: Optional[bool] = typer.Option(None, "--model/--no-model"),
    weld_vertices: Optional[bool] = typer.Option(None, "--weld-vertices/--no-weld-vertices"),
    use_world_coords: Optional[bool] = typer.Option(None, "--use-world-coords/--no-use-world-coords"),
    convert_back_units: Optional[bool] = typer.Option(None, "--convert-back-units/--no-convert-back-units"),
    sew_shells: Optional[bool] = typer.Option(None, "--sew-shells/--no-sew-shells"),
    merge_boolean_operands: Optional[bool] = typer.Option(
        None, "--merge-boolean-operands/--no-merge-boolean-operands"
    ),
    disable_opening_subtractions: Optional[bool] = typer.Option(
        None, "--disable-opening-subtractions/--no-disable-opening-subtractions"
    ),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Convert an IFC file (IfcConvert)."""

    parameters = dict(
        input_filename=input_filename,
        output_filename=output_filename,
        include=include,
        exclude=exclude,
        bounds=bounds,
        log_file=log_file,
        verbose=verbose,
        plan=plan,
        model=model,
        weld_vertices=weld_vertices,
        use_world_coords=use_world_coords,
        convert_back_units=convert_back_units,
        sew_shells=sew_shells,
        merge_boolean_operands=merge_boolean_operands,
        disable_opening_subtractions=disable_opening_subtractions,
    )
    _submit(ctx, OperationKind.CONVERT, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


def _parse_clash_file(value: str) -> Dict[str, Any]:
    parts = value.split("::")
    entry: Dict[str, Any] = {"file": parts[0]}
    if len(parts) > 1 and parts[1]:
        entry["selector"] = parts[1]
    if len(parts) > 2 and parts[2]:
        entry["mode"] = parts[2]
    return entry


@app.command()
def clash(
    ctx: typer.Context,
    clash_set_name: str = typer.Argument(...),
    output_filename: str = typer.Argument(...),
    group_a: Optional[List[str]] = typer.Option(None, "--a", help="FILE[::SELECTOR[::include|exclude]] (repeatable)."),
    group_b: Optional[List[str]] = typer.Option(None, "--b", help="FILE[::SELECTOR[::include|exclude]] (repeatable)."),
    tolerance: Optional[float] = typer.Option(None),
    smart_grouping: Optional[bool] = typer.Option(None, "--smart-grouping/--no-smart-grouping"),
    max_cluster_distance: Optional[float] = typer.Option(None, "--max-cluster-distance"),
    mode: Optional[str] = typer.Option(None, help="intersection, collision or clearance."),
    clearance: Optional[float] = typer.Option(None),
    check_all: Optional[bool] = typer.Option(None, "--check-all/--no-check-all"),
    allow_touching: Optional[bool] = typer.Option(None, "--allow-touching/--no-allow-touching"),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Detect clashes between two groups of IFC files."""

    parameters = dict(
        clash_set_name=clash_set_name,
        output_filename=output_filename,
        group_a=[_parse_clash_file(v) for v in group_a or []],
        group_b=[_parse_clash_file(v) for v in group_b or []],
        tolerance=tolerance,
        smart_grouping=smart_grouping,
        max_cluster_distance=max_cluster_distance,
        mode=mode,
        clearance=clearance,
        check_all=check_all,
        allow_touching=allow_touching,
    )
    _submit(ctx, OperationKind.CLASH, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@app.command()
def diff(
    ctx: typer.Context,
    old_file: str = typer.Argument(...),
    new_file: str = typer.Argument(...),
    output_file: str = typer.Argument(...),
    relationship: Optional[List[str]] = typer.Option(
        None, "--relationship", "-r", help="aggregate, attributes, classification, container, geometry, property, type."
    ),
    shallow: bool = typer.Option(True, "--shallow/--deep"),
    filter_elements: Optional[str] = typer.Option(None, "--filter"),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Compare two IFC files (IfcDiff)."""

    parameters: Dict[str, Any] = dict(
        old_file=old_file,
        new_file=new_file,
        output_file=output_file,
        is_shallow=shallow,
        filter_elements=filter_elements,
    )
    if relationship:
        parameters["relationships"] = relationship
    _submit(ctx, OperationKind.DIFF, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@csv_app.command("export")
def csv_export(
    ctx: typer.Context,
    filename: str = typer.Argument(...),
    output_filename: str = typer.Argument(...),
    file_format: Optional[str] = typer.Option(None, "--format", help="csv or xlsx."),
    delimiter: Optional[str] = typer.Option(None),
    null: Optional[str] = typer.Option(None, "--null"),
    query: Optional[str] = typer.Option(None),
    attributes: Optional[str] = typer.Option(None, help="Comma-separated attributes, e.g. Name,Description."),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Export IFC data to CSV/XLSX."""

    parameters = dict(
        filename=filename,
        output_filename=output_filename,
        format=file_format,
        delimiter=delimiter,
        null=null,
        query=query,
        attributes=attributes,
    )
    _submit(ctx, OperationKind.CSV_EXPORT, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@csv_app.command("import")
def csv_import(
    ctx: typer.Context,
    ifc_filename: str = typer.Argument(...),
    csv_filename: str = typer.Argument(...),
    output_filename: Optional[str] = typer.Option(None, "--output-filename"),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Import CSV changes back into an IFC file."""

    parameters = dict(ifc_filename=ifc_filename, csv_filename=csv_filename, output_filename=output_filename)
    _submit(ctx, OperationKind.CSV_IMPORT, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@app.command()
def patch(
    ctx: typer.Context,
    input_file: str = typer.Argument(...),
    output_file: str = typer.Argument(...),
    recipe: str = typer.Argument(..., help="Recipe name, e.g. ExtractElements."),
    query: Optional[str] = typer.Option(None, help="ExtractElements: filter query, e.g. IfcWall."),
    unique: bool = typer.Option(
        True, "--unique/--no-unique", help="ExtractElements: assume asset uniqueness by name."
    ),
    unit: Optional[str] = typer.Option(None, help="ConvertLengthUnit: target unit name."),
    argument: Optional[List[str]] = typer.Option(None, "--arg", help="Positional argument for other recipes (repeatable)."),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Execute an IfcPatch recipe (built-in or custom)."""

    parameters = dict(
        input_file=input_file,
        output_file=output_file,
        recipe=recipe,
        query=query,
        assume_asset_uniqueness_by_name=unique,
        unit=unit,
        arguments=list(argument or []),
    )
    _submit(ctx, OperationKind.PATCH, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@app.command()
def qto(
    ctx: typer.Context,
    input_file: str = typer.Argument(...),
    output_file: Optional[str] = typer.Option(None, "--output-file"),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Calculate quantities (quantity takeoff)."""

    parameters = dict(input_file=input_file, output_file=output_file)
    _submit(
        ctx, OperationKind.QUANTITY_TAKEOFF, parameters, wait=wait, interval=interval, timeout=timeout, output=output
    )


@app.command()
def validate(
    ctx: typer.Context,
    ifc_filename: str = typer.Argument(...),
    ids_filename: str = typer.Argument(...),
    output_filename: str = typer.Argument(...),
    report_type: str = typer.Option("json", "--report", help="json, html or xlsx."),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Validate an IFC file against an IDS specification (IfcTester)."""

    parameters = dict(
        ifc_filename=ifc_filename,
        ids_filename=ids_filename,
        output_filename=output_filename,
        report_type=report_type,
    )
    _submit(ctx, OperationKind.VALIDATE, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@ifc2json_app.command("convert")
def ifc2json_convert(
    ctx: typer.Context,
    filename: str = typer.Argument(...),
    output_filename: str = typer.Argument(...),
    wait: bool = _wait_option(),
    interval: Optional[float] = _interval_option(),
    timeout: Optional[float] = _timeout_option(),
    output: Optional[Path] = _output_option(),
) -> None:
    """Convert an IFC file to JSON."""

    parameters = dict(filename=filename, output_filename=output_filename)
    _submit(ctx, OperationKind.IFC_TO_JSON, parameters, wait=wait, interval=interval, timeout=timeout, output=output)


@ifc2json_app.command("get")
def ifc2json_get(
    ctx: typer.Context,
    filename: str = typer.Argument(...),
    output: Optional[Path] = _output_option(),
) -> None:
    """Fetch a converted JSON document."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await get_ifc_json(api, filename)

    document = _execute(_run)
    if output is not None:
        _export(document, output)
    else:
        _console.print_json(data=document if document is not None else {})


# --- jobs / batch ----------------------------------------------------------


@job_app.command("status")
def job_status(ctx: typer.Context, job_id: str = typer.Argument(...)) -> None:
    """Check the status of a submitted job."""

    settings = _settings(ctx)

    async def _run():
        async with build_client(settings) as api:
            return await JobRunner(api).get_job(job_id)

    job = _execute(_run)
    _console.print(build_job_status_panel(job))


@app.command()
def batch(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    continue_on_error: Optional[bool] = typer.Option(
        None, "--continue-on-error/--stop-on-error", help="Record item errors instead of aborting."
    ),
    output: Optional[Path] = _output_option(),
) -> None:
    """Run the operations listed in a JSON batch file, one after another."""

    settings = _settings(ctx)

    try:
        batch_file = load_batch_file(path)
    except IfcPipelineError as exc:
        _err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    keep_going = batch_file.continue_on_error if continue_on_error is None else continue_on_error

    async def _run():
        async with build_client(settings) as api:
            runner = JobRunner(api, policy=settings.polling_policy())
            return await run_batch(
                runner,
                batch_file.operations,
                continue_on_error=keep_going,
                default_policy=settings.polling_policy(),
            )

    results = _execute(_run)
    _console.print(build_batch_table(results))
    _export([item.to_output() for item in results], output)
    if any(not item.ok for item in results):
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
