"""Opciones tipadas por tipo de operación.

Cada operación remota tiene un modelo que se valida *antes* de construir el
body. Los campos opcionales valen `None` cuando no se han fijado; el builder
los omite del body.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class OperationKind(str, Enum):
    CONVERT = "convert"
    CLASH = "clash"
    DIFF = "diff"
    CSV_EXPORT = "csv_export"
    CSV_IMPORT = "csv_import"
    PATCH = "patch"
    QUANTITY_TAKEOFF = "quantity_takeoff"
    VALIDATE = "validate"
    IFC_TO_JSON = "ifc_to_json"


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ConversionOptions(_Options):
    input_filename: str = Field(..., min_length=1)
    output_filename: str = Field(..., min_length=1)

    verbose: bool | None = None
    plan: bool | None = None
    model: bool | None = None
    weld_vertices: bool | None = None
    use_world_coords: bool | None = None
    convert_back_units: bool | None = None
    sew_shells: bool | None = None
    merge_boolean_operands: bool | None = None
    disable_opening_subtractions: bool | None = None
    bounds: str | None = None
    include: str | None = Field(
        default=None,
        description="Lista separada por comas (p.ej. 'IfcWall, IfcSlab').",
    )
    exclude: str | None = Field(default=None, description="Lista separada por comas.")
    log_file: str | None = None


class ClashFile(_Options):
    file: str = Field(..., min_length=1)
    selector: str | None = None
    mode: Literal["include", "exclude"] | None = None


class ClashOptions(_Options):
    clash_set_name: str = Field(..., min_length=1)
    output_filename: str = Field(..., min_length=1)
    group_a: list[ClashFile] = Field(default_factory=list)
    group_b: list[ClashFile] = Field(default_factory=list)

    tolerance: float | None = None
    smart_grouping: bool | None = None
    max_cluster_distance: float | None = None
    mode: Literal["intersection", "collision", "clearance"] | None = None
    clearance: float | None = None
    check_all: bool | None = None
    allow_touching: bool | None = None


DiffRelationship = Literal[
    "aggregate",
    "attributes",
    "classification",
    "container",
    "geometry",
    "property",
    "type",
]


class DiffOptions(_Options):
    old_file: str = Field(..., min_length=1)
    new_file: str = Field(..., min_length=1)
    output_file: str = Field(..., min_length=1)
    relationships: list[DiffRelationship] = Field(default_factory=lambda: ["geometry"])
    is_shallow: bool = True
    filter_elements: str | None = None


class CsvExportOptions(_Options):
    filename: str = Field(..., min_length=1)
    output_filename: str = Field(..., min_length=1)

    format: Literal["csv", "xlsx"] | None = None
    delimiter: str | None = None
    null: str | None = None
    query: str | None = None
    attributes: str | None = Field(
        default=None,
        description="Atributos separados por comas (p.ej. 'Name,Description').",
    )


class CsvImportOptions(_Options):
    ifc_filename: str = Field(..., min_length=1)
    csv_filename: str = Field(..., min_length=1)
    output_filename: str | None = None


class PatchOptions(_Options):
    input_file: str = Field(..., min_length=1)
    output_file: str = Field(..., min_length=1)
    recipe: str = Field(..., min_length=1)

    # ExtractElements
    query: str | None = None
    assume_asset_uniqueness_by_name: bool = True
    # ConvertLengthUnit
    unit: str | None = None
    # Cualquier otra receta: argumentos posicionales libres.
    arguments: list[str] = Field(default_factory=list)


class QuantityTakeoffOptions(_Options):
    input_file: str = Field(..., min_length=1)
    output_file: str | None = None


class ValidationOptions(_Options):
    ifc_filename: str = Field(..., min_length=1)
    ids_filename: str = Field(..., min_length=1)
    output_filename: str = Field(..., min_length=1)
    report_type: Literal["json", "html", "xlsx"] = "json"


class IfcToJsonOptions(_Options):
    filename: str = Field(..., min_length=1)
    output_filename: str = Field(..., min_length=1)


OPTIONS_BY_KIND: dict[OperationKind, type[_Options]] = {
    OperationKind.CONVERT: ConversionOptions,
    OperationKind.CLASH: ClashOptions,
    OperationKind.DIFF: DiffOptions,
    OperationKind.CSV_EXPORT: CsvExportOptions,
    OperationKind.CSV_IMPORT: CsvImportOptions,
    OperationKind.PATCH: PatchOptions,
    OperationKind.QUANTITY_TAKEOFF: QuantityTakeoffOptions,
    OperationKind.VALIDATE: ValidationOptions,
    OperationKind.IFC_TO_JSON: IfcToJsonOptions,
}


class OperationRequest(BaseModel):
    """Una operación a ejecutar (p.ej. un item de un fichero batch)."""

    model_config = ConfigDict(extra="ignore")

    operation: OperationKind
    parameters: dict[str, Any] = Field(default_factory=dict)
    wait: bool = True
    interval_seconds: float | None = Field(default=None, gt=0)
    timeout_seconds: float | None = Field(default=None, gt=0)


class BatchFile(BaseModel):
    continue_on_error: bool = False
    operations: list[OperationRequest] = Field(default_factory=list)
