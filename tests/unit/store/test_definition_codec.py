"""Unit tests for the definition JSON codec."""

from __future__ import annotations

import json

import pytest

from core.errors import DashbuilderParseError
from core.types import CSVDataSetDef, DataSetDef
from store.definition_codec import DataSetDefJSONCodec
from tests.fixture_paths import definition_fixture_text


def test_from_json_parses_bean_definition_and_keeps_extra_fields() -> None:
    """Provider-specific fields should survive parsing untouched."""
    codec = DataSetDefJSONCodec()

    definition = codec.from_json(definition_fixture_text("sales.dset"))

    assert (
        definition.uuid == "sales-opportunities"
        and definition.provider == "BEAN"
        and definition.extra["generatorClass"] == "org.dashbuilder.dataset.SalesGenerator"
        and definition.extra["paramMap"] == {"multiplier": "1"}
    )


def test_from_json_builds_csv_definition() -> None:
    """The CSV provider should yield a CSV definition with its fields."""
    codec = DataSetDefJSONCodec()

    definition = codec.from_json(definition_fixture_text("expenses.dset"))

    assert isinstance(definition, CSVDataSetDef) and definition.separator_char == ";"


def test_to_json_string_omits_location_fields() -> None:
    """Store and deployment paths are not part of the document."""
    codec = DataSetDefJSONCodec()
    definition = DataSetDef(uuid="a", provider="BEAN")
    definition.vfs_path = "a.dset"
    definition.def_file_path = "/deploy/a.dset"

    payload = json.loads(codec.to_json_string(definition))

    assert "vfsPath" not in payload and "defFilePath" not in payload and payload["uuid"] == "a"


def test_to_json_string_is_key_order_independent() -> None:
    """Serialization should not depend on extra field insertion order."""
    codec = DataSetDefJSONCodec()
    first = DataSetDef(uuid="a", provider="SQL", extra={"table": "t", "schema": "s"})
    second = DataSetDef(uuid="a", provider="SQL", extra={"schema": "s", "table": "t"})

    assert codec.to_json_string(first) == codec.to_json_string(second)


def test_definitions_equal_ignores_locations_but_not_content() -> None:
    """Structural equality compares document content only."""
    codec = DataSetDefJSONCodec()
    stored = DataSetDef(uuid="a", provider="BEAN", name="A")
    stored.vfs_path = "a.dset"
    deployed = DataSetDef(uuid="a", provider="BEAN", name="A")
    deployed.def_file_path = "/deploy/a.dset"
    changed = DataSetDef(uuid="a", provider="BEAN", name="B")

    assert codec.definitions_equal(stored, deployed) and not codec.definitions_equal(
        stored, changed
    )


def test_from_json_normalizes_provider_case() -> None:
    """Provider names are upper-cased."""
    codec = DataSetDefJSONCodec()

    definition = codec.from_json('{"uuid": "a", "provider": "csv"}')

    assert isinstance(definition, CSVDataSetDef) and definition.provider == "CSV"


def test_from_json_allows_missing_uuid() -> None:
    """Deployment files may omit the uuid."""
    codec = DataSetDefJSONCodec()

    definition = codec.from_json('{"provider": "BEAN"}')

    assert definition.uuid is None


@pytest.mark.parametrize(
    "json_text",
    [
        "{not json",
        "[1, 2, 3]",
        '{"uuid": "a"}',
        '{"uuid": "a", "provider": ""}',
        '{"uuid": "a", "provider": "BEAN", "isPublic": "yes"}',
        '{"uuid": "a", "provider": "BEAN", "cacheMaxRows": true}',
    ],
)
def test_from_json_rejects_malformed_documents(json_text: str) -> None:
    """Malformed documents should raise a parse error."""
    codec = DataSetDefJSONCodec()

    with pytest.raises(DashbuilderParseError):
        codec.from_json(json_text)

    assert True


def test_from_json_rejects_excessive_nesting() -> None:
    """Documents nested beyond the parser limit raise a parse error."""
    codec = DataSetDefJSONCodec()
    nested_value = "[" * 200_000 + "]" * 200_000

    with pytest.raises(DashbuilderParseError, match="nesting"):
        codec.from_json('{"provider": "BEAN", "x": ' + nested_value + "}")

    assert True
