"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

import json
from typing import Iterable

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import Job, JobRun, RecipeDescriptor, RunState, SelectOption
from core.services.operation_runner import ItemResult

_STATE_STYLE = {
    RunState.INLINE: "green",
    RunState.SUBMITTED: "yellow",
    RunState.SUCCEEDED: "green",
}


def build_options_table(options: Iterable[SelectOption], *, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Value", style="cyan")
    table.add_column("Label", style="white")
    table.add_column("Description", style="dim")
    for option in options:
        table.add_row(option.value or "-", option.label, option.description or "")
    return table


def build_recipes_table(recipes: Iterable[RecipeDescriptor]) -> Table:
    table = Table(title="IfcPatch recipes")
    table.add_column("Recipe", style="cyan", no_wrap=True)
    table.add_column("Source", style="magenta")
    table.add_column("Parameters", style="white")
    table.add_column("Description", style="dim")
    for recipe in recipes:
        params = ", ".join(
            f"{p.name}{'' if p.required is not False else '?'}: {p.type}" for p in recipe.parameters or []
        )
        table.add_row(
            recipe.name,
            "custom" if recipe.is_custom else "built-in",
            params or "-",
            recipe.description,
        )
    return table


def _render_payload(payload: object) -> str:
    if isinstance(payload, (dict, list)):
        return json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    return str(payload)


def build_job_panel(run: JobRun, *, title: str) -> Panel:
    """Panel para presentar el resultado de `run_job`."""

    style = _STATE_STYLE.get(run.state, "white")
    body = Text()
    body.append(f"State: {run.state.value}\n", style=f"bold {style}")
    if run.job_id:
        body.append(f"Job: {run.job_id}\n")
    if run.state is RunState.SUBMITTED:
        body.append("Not waiting for completion; check later with `ifcpipe job status`.\n", style="dim")
    body.append("\n")
    body.append(_render_payload(run.result))
    return Panel(body, title=Text(title, style=f"bold {style}"), border_style=style)


def build_job_status_panel(job: Job) -> Panel:
    style = {"succeeded": "green", "failed": "red"}.get(job.status.value, "yellow")
    body = Text()
    body.append(f"Status: {job.status.value}\n", style=f"bold {style}")
    if job.error:
        body.append(f"Error: {job.error}\n", style="red")
    if job.result is not None:
        body.append("\n")
        body.append(_render_payload(job.result))
    return Panel(body, title=f"Job {job.id}", border_style=style)


def build_batch_table(results: Iterable[ItemResult]) -> Table:
    table = Table(title="Batch results")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Operation", style="white")
    table.add_column("Status", style="green")
    table.add_column("Details", style="dim")
    for item in results:
        if item.ok:
            output = item.output or {}
            details = str(output.get("job_id") or output.get("message") or "")
            table.add_row(str(item.index), item.operation.value, "OK", details)
        else:
            table.add_row(str(item.index), item.operation.value, "[red]ERROR[/red]", item.error or "")
    return table
