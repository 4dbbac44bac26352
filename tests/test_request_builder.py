"""
Tests for the request body builder.

Tests cover:
- Omission of unset optional fields
- Comma-separated list splitting
- Positional recipe arguments for patch execution
- Diff relationship defaults and clash set layout
- Validation errors raised before any call
"""

import pytest

from core.domain.operations import OperationKind, PatchOptions
from core.errors import RequestValidationError
from core.services.request_builder import (
    build_body,
    build_request,
    parse_options,
    recipe_arguments,
    split_csv,
)


class TestSplitCsv:
    def test_trims_and_drops_empty_items(self):
        assert split_csv(" IfcWall, IfcSlab ,, ") == ["IfcWall", "IfcSlab"]

    @pytest.mark.parametrize("value", [None, "", " , ,"])
    def test_empty_input_is_none(self, value):
        assert split_csv(value) is None


class TestConversionBody:
    def test_unset_optionals_are_omitted(self):
        """Only required fields appear when nothing else is set."""
        body = build_body("convert", {"input_filename": "a.ifc", "output_filename": "a.obj"})

        assert body == {"input_filename": "a.ifc", "output_filename": "a.obj"}

    def test_include_is_split_and_false_flags_are_kept(self):
        body = build_body(
            OperationKind.CONVERT,
            {
                "input_filename": "a.ifc",
                "output_filename": "a.glb",
                "include": "IfcWall, IfcSlab",
                "exclude": "",
                "weld_vertices": False,
            },
        )

        assert body["include"] == ["IfcWall", "IfcSlab"]
        assert "exclude" not in body
        assert body["weld_vertices"] is False

    def test_build_request_returns_endpoint(self):
        path, body = build_request("convert", {"input_filename": "a.ifc", "output_filename": "a.obj"})

        assert path == "/ifcconvert"
        assert body["input_filename"] == "a.ifc"


class TestPatchBody:
    def _patch(self, **extra):
        return {"input_file": "in.ifc", "output_file": "out.ifc", **extra}

    def test_extract_elements_arguments(self):
        body = build_body("patch", self._patch(recipe="ExtractElements", query="IfcWall"))

        assert body == {
            "input_file": "in.ifc",
            "output_file": "out.ifc",
            "recipe": "ExtractElements",
            "use_custom": False,
            "arguments": ["IfcWall", True],
        }

    def test_extract_elements_uniqueness_flag(self):
        options = PatchOptions(
            **self._patch(recipe="ExtractElements", query="IfcDoor", assume_asset_uniqueness_by_name=False)
        )

        assert recipe_arguments(options) == ["IfcDoor", False]

    def test_convert_length_unit_arguments(self):
        body = build_body("patch", self._patch(recipe="ConvertLengthUnit", unit="METRE"))

        assert body["arguments"] == ["METRE"]

    def test_generic_recipe_passes_free_arguments_in_order(self):
        body = build_body(
            "patch",
            self._patch(recipe="MyRecipe", arguments=["first", "", "second"]),
            use_custom=True,
        )

        assert body["arguments"] == ["first", "second"]
        assert body["use_custom"] is True

    def test_extract_elements_requires_query(self):
        with pytest.raises(RequestValidationError, match="query"):
            build_body("patch", self._patch(recipe="ExtractElements"))

    def test_convert_length_unit_requires_unit(self):
        with pytest.raises(RequestValidationError, match="unit"):
            build_body("patch", self._patch(recipe="ConvertLengthUnit"))


class TestDiffBody:
    def _diff(self, **extra):
        return {"old_file": "v1.ifc", "new_file": "v2.ifc", "output_file": "diff.json", **extra}

    def test_default_relationships_are_not_sent(self):
        body = build_body("diff", self._diff())

        assert "relationships" not in body
        assert body["is_shallow"] is True

    def test_custom_relationships_are_sent(self):
        body = build_body("diff", self._diff(relationships=["geometry", "property"], is_shallow=False))

        assert body["relationships"] == ["geometry", "property"]
        assert body["is_shallow"] is False

    def test_empty_relationships_are_omitted(self):
        assert "relationships" not in build_body("diff", self._diff(relationships=[]))


class TestOtherBodies:
    def test_clash_set_layout(self):
        body = build_body(
            "clash",
            {
                "clash_set_name": "MEP vs Structure",
                "output_filename": "clash.json",
                "group_a": [{"file": "mep.ifc", "selector": "IfcPipeSegment", "mode": "include"}],
                "group_b": [{"file": "str.ifc"}],
                "tolerance": 0.01,
            },
        )

        assert body["clash_sets"] == [
            {
                "name": "MEP vs Structure",
                "a": [{"file": "mep.ifc", "selector": "IfcPipeSegment", "mode": "include"}],
                "b": [{"file": "str.ifc"}],
            }
        ]
        assert body["tolerance"] == 0.01
        assert "smart_grouping" not in body

    def test_csv_export_attributes(self):
        body = build_body(
            "csv_export",
            {"filename": "a.ifc", "output_filename": "a.csv", "attributes": "Name, Description", "query": ""},
        )

        assert body == {"filename": "a.ifc", "output_filename": "a.csv", "attributes": ["Name", "Description"]}

    def test_validation_report_type_default(self):
        path, body = build_request(
            "validate", {"ifc_filename": "a.ifc", "ids_filename": "rules.ids", "output_filename": "report.json"}
        )

        assert path == "/ifctester"
        assert body["report_type"] == "json"

    def test_quantity_takeoff_optional_output(self):
        assert build_request("quantity_takeoff", {"input_file": "a.ifc"}) == ("/calculate-qtos", {"input_file": "a.ifc"})


class TestValidation:
    def test_unknown_operation(self):
        with pytest.raises(RequestValidationError, match="Unknown operation"):
            parse_options("teleport", {})

    def test_missing_required_field(self):
        with pytest.raises(RequestValidationError, match="output_filename"):
            build_body("convert", {"input_filename": "a.ifc"})

    def test_unexpected_field_is_rejected(self):
        with pytest.raises(RequestValidationError):
            build_body("ifc_to_json", {"filename": "a.ifc", "output_filename": "a.json", "color": "red"})

    def test_invalid_literal(self):
        with pytest.raises(RequestValidationError, match="report_type"):
            build_body(
                "validate",
                {"ifc_filename": "a.ifc", "ids_filename": "b.ids", "output_filename": "r", "report_type": "pdf"},
            )
