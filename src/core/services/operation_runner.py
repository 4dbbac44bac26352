"""Operation orchestration utilities.

Entry points (CLI, batch files, tests) describe *what* to run as an
`OperationRequest`; this module turns it into a job submission:

1. resolve recipe metadata when the operation is a patch execution,
2. build the wire body,
3. submit through the `JobRunner` with the request's polling budget.

Batches run strictly sequentially. Whether an item failure aborts the batch
or is recorded next to the other results is the caller's choice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from adapters.discovery import RecipeCatalog
from core.domain.models import JobRun, PollingPolicy
from core.domain.operations import OperationKind, OperationRequest
from core.errors import IfcPipelineError
from core.interfaces.pipeline_api import PipelineApi
from core.services.job_runner import JobRunner
from core.services.request_builder import build_request, parse_options, recipe_arguments

logger = logging.getLogger(__name__)


@dataclass
class ItemResult:
    """Outcome of one batch item."""

    index: int
    operation: OperationKind
    output: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_output(self) -> dict[str, Any]:
        if self.error is not None:
            return {"item": self.index, "operation": self.operation.value, "error": self.error}
        return {"item": self.index, "operation": self.operation.value, **(self.output or {})}


def _policy_for(request: OperationRequest, default: PollingPolicy) -> PollingPolicy:
    return PollingPolicy(
        interval_seconds=request.interval_seconds or default.interval_seconds,
        timeout_seconds=request.timeout_seconds or default.timeout_seconds,
    )


async def run_operation(
    runner: JobRunner,
    request: OperationRequest,
    *,
    catalog: RecipeCatalog | None = None,
    default_policy: PollingPolicy | None = None,
) -> JobRun:
    """Validate, build and submit a single operation."""

    options = parse_options(request.operation, request.parameters)

    use_custom = False
    if request.operation is OperationKind.PATCH:
        # Bad recipe arguments fail before the metadata lookup.
        recipe_arguments(options)  # type: ignore[arg-type]
        catalog = catalog or RecipeCatalog(runner.api)
        use_custom = await catalog.is_custom(options.recipe)  # type: ignore[attr-defined]

    path, body = build_request(request.operation, options, use_custom=use_custom)
    policy = _policy_for(request, default_policy or PollingPolicy())
    return await runner.run_job(path, body, wait=request.wait, policy=policy)


async def run_batch(
    runner: JobRunner,
    requests: Iterable[OperationRequest],
    *,
    continue_on_error: bool = False,
    default_policy: PollingPolicy | None = None,
    on_item: Callable[[ItemResult], None] | None = None,
) -> list[ItemResult]:
    """Run ``requests`` one after another.

    With ``continue_on_error`` an item failure is recorded as
    ``ItemResult.error`` and the batch goes on; otherwise the exception
    propagates and later items are not run.
    """

    catalog = RecipeCatalog(runner.api)
    results: list[ItemResult] = []
    try:
        for index, request in enumerate(requests):
            try:
                run = await run_operation(
                    runner,
                    request,
                    catalog=catalog,
                    default_policy=default_policy,
                )
                item = ItemResult(index=index, operation=request.operation, output=run.to_output())
            except IfcPipelineError as exc:
                if not continue_on_error:
                    raise
                logger.warning("Batch item %d (%s) failed: %s", index, request.operation.value, exc)
                item = ItemResult(index=index, operation=request.operation, error=str(exc))

            results.append(item)
            if on_item is not None:
                on_item(item)
    finally:
        catalog.invalidate()
    return results


async def get_ifc_json(api: PipelineApi, filename: str) -> Any:
    """Fetch a JSON document previously produced by an IFC to JSON job."""

    return await api.request("GET", f"/ifc2json/{filename.lstrip('/')}")
