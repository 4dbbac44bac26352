"""Translate typed operation options into wire-format request bodies.

Rules shared by every operation:

- required parameters are always emitted under their snake_case wire name;
- optional parameters are emitted only when set (never as ``null``/``""``);
- comma-separated list parameters become trimmed lists, and an empty input
  omits the field.

Patch execution is the exception: recipe arguments are positional.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ValidationError

from core.domain.operations import (
    OPTIONS_BY_KIND,
    ClashFile,
    ClashOptions,
    ConversionOptions,
    CsvExportOptions,
    CsvImportOptions,
    DiffOptions,
    IfcToJsonOptions,
    OperationKind,
    PatchOptions,
    QuantityTakeoffOptions,
    ValidationOptions,
)
from core.errors import RequestValidationError

OPERATION_ENDPOINTS: dict[OperationKind, str] = {
    OperationKind.CONVERT: "/ifcconvert",
    OperationKind.CLASH: "/ifcclash",
    OperationKind.DIFF: "/ifcdiff",
    OperationKind.CSV_EXPORT: "/ifccsv",
    OperationKind.CSV_IMPORT: "/ifccsv/import",
    OperationKind.PATCH: "/patch/execute",
    OperationKind.QUANTITY_TAKEOFF: "/calculate-qtos",
    OperationKind.VALIDATE: "/ifctester",
    OperationKind.IFC_TO_JSON: "/ifc2json",
}

EXTRACT_ELEMENTS = "ExtractElements"
CONVERT_LENGTH_UNIT = "ConvertLengthUnit"


def split_csv(value: str | None) -> list[str] | None:
    """``"a, b ,c"`` -> ``["a", "b", "c"]``; empty input -> ``None``."""

    if not value:
        return None
    items = [item.strip() for item in value.split(",")]
    items = [item for item in items if item]
    return items or None


def _put(body: dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (str, list)) and not value:
        return
    body[key] = value


def parse_options(kind: OperationKind | str, raw: Mapping[str, Any] | BaseModel) -> BaseModel:
    """Validate raw parameters into the typed options model of ``kind``."""

    try:
        kind = OperationKind(kind)
    except ValueError as exc:
        raise RequestValidationError(f"Unknown operation: {kind!r}") from exc

    model = OPTIONS_BY_KIND[kind]
    if isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(exclude_unset=True)

    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or kind.value}: {err['msg']}"
            for err in exc.errors()
        )
        raise RequestValidationError(f"Invalid parameters for {kind.value}: {problems}") from exc


def build_conversion_body(options: ConversionOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "input_filename": options.input_filename,
        "output_filename": options.output_filename,
    }
    for flag in (
        "verbose",
        "plan",
        "model",
        "weld_vertices",
        "use_world_coords",
        "convert_back_units",
        "sew_shells",
        "merge_boolean_operands",
        "disable_opening_subtractions",
    ):
        _put(body, flag, getattr(options, flag))
    _put(body, "bounds", options.bounds)
    _put(body, "include", split_csv(options.include))
    _put(body, "exclude", split_csv(options.exclude))
    _put(body, "log_file", options.log_file)
    return body


def _clash_file(entry: ClashFile) -> dict[str, Any]:
    out: dict[str, Any] = {"file": entry.file}
    _put(out, "selector", entry.selector)
    _put(out, "mode", entry.mode)
    return out


def build_clash_body(options: ClashOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "clash_sets": [
            {
                "name": options.clash_set_name,
                "a": [_clash_file(f) for f in options.group_a],
                "b": [_clash_file(f) for f in options.group_b],
            }
        ],
        "output_filename": options.output_filename,
    }
    _put(body, "tolerance", options.tolerance)
    _put(body, "smart_grouping", options.smart_grouping)
    _put(body, "max_cluster_distance", options.max_cluster_distance)
    _put(body, "mode", options.mode)
    _put(body, "clearance", options.clearance)
    _put(body, "check_all", options.check_all)
    _put(body, "allow_touching", options.allow_touching)
    return body


def build_diff_body(options: DiffOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "old_file": options.old_file,
        "new_file": options.new_file,
        "output_file": options.output_file,
        "is_shallow": options.is_shallow,
    }
    # ["geometry"] is the server default.
    relationships = list(options.relationships)
    if relationships and relationships != ["geometry"]:
        body["relationships"] = relationships
    _put(body, "filter_elements", options.filter_elements)
    return body


def build_csv_export_body(options: CsvExportOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "filename": options.filename,
        "output_filename": options.output_filename,
    }
    _put(body, "format", options.format)
    _put(body, "delimiter", options.delimiter)
    _put(body, "null", options.null)
    _put(body, "query", options.query)
    _put(body, "attributes", split_csv(options.attributes))
    return body


def build_csv_import_body(options: CsvImportOptions) -> dict[str, Any]:
    body: dict[str, Any] = {
        "ifc_filename": options.ifc_filename,
        "csv_filename": options.csv_filename,
    }
    _put(body, "output_filename", options.output_filename)
    return body


def recipe_arguments(options: PatchOptions) -> list[Any]:
    """Positional arguments for a recipe.

    ``ExtractElements`` takes ``(query, assume_asset_uniqueness_by_name)`` and
    ``ConvertLengthUnit`` takes ``(unit,)``. Any other recipe receives the
    caller's free-form arguments in order.
    """

    if options.recipe == EXTRACT_ELEMENTS:
        if not options.query:
            raise RequestValidationError("ExtractElements requires a query (e.g. 'IfcWall').")
        return [options.query, bool(options.assume_asset_uniqueness_by_name)]
    if options.recipe == CONVERT_LENGTH_UNIT:
        if not options.unit:
            raise RequestValidationError("ConvertLengthUnit requires a unit name (e.g. 'METRE').")
        return [options.unit]
    return [arg for arg in options.arguments if arg]


def build_patch_body(options: PatchOptions, *, use_custom: bool = False) -> dict[str, Any]:
    return {
        "input_file": options.input_file,
        "output_file": options.output_file,
        "recipe": options.recipe,
        "use_custom": bool(use_custom),
        "arguments": recipe_arguments(options),
    }


def build_quantity_takeoff_body(options: QuantityTakeoffOptions) -> dict[str, Any]:
    body: dict[str, Any] = {"input_file": options.input_file}
    _put(body, "output_file", options.output_file)
    return body


def build_validation_body(options: ValidationOptions) -> dict[str, Any]:
    return {
        "ifc_filename": options.ifc_filename,
        "ids_filename": options.ids_filename,
        "output_filename": options.output_filename,
        "report_type": options.report_type,
    }


def build_ifc_to_json_body(options: IfcToJsonOptions) -> dict[str, Any]:
    return {
        "filename": options.filename,
        "output_filename": options.output_filename,
    }


_BUILDERS = {
    OperationKind.CONVERT: build_conversion_body,
    OperationKind.CLASH: build_clash_body,
    OperationKind.DIFF: build_diff_body,
    OperationKind.CSV_EXPORT: build_csv_export_body,
    OperationKind.CSV_IMPORT: build_csv_import_body,
    OperationKind.QUANTITY_TAKEOFF: build_quantity_takeoff_body,
    OperationKind.VALIDATE: build_validation_body,
    OperationKind.IFC_TO_JSON: build_ifc_to_json_body,
}


def build_body(
    kind: OperationKind | str,
    raw: Mapping[str, Any] | BaseModel,
    *,
    use_custom: bool = False,
) -> dict[str, Any]:
    """Build the wire body for ``kind`` from raw or typed parameters.

    ``use_custom`` only applies to patch execution; it comes from the recipe
    metadata resolved by the caller.
    """

    options = parse_options(kind, raw)
    kind = OperationKind(kind)
    if kind is OperationKind.PATCH:
        return build_patch_body(options, use_custom=use_custom)  # type: ignore[arg-type]
    return _BUILDERS[kind](options)  # type: ignore[arg-type]


def build_request(
    kind: OperationKind | str,
    raw: Mapping[str, Any] | BaseModel,
    *,
    use_custom: bool = False,
) -> tuple[str, dict[str, Any]]:
    """Return ``(path, body)`` for a job submission."""

    body = build_body(kind, raw, use_custom=use_custom)
    return OPERATION_ENDPOINTS[OperationKind(kind)], body
