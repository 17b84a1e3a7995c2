"""JSON codec for data set definition documents.

This module converts ``DataSetDef`` documents to and from their UTF-8 JSON
text form. Location fields are never serialized so that a definition read
from disk compares equal to the one registered from elsewhere.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from core.constants import CSV_PROVIDER_TYPE
from core.errors import DashbuilderParseError
from core.types import CSVDataSetDef, DataSetDef

_COMMON_STRING_FIELDS = {"uuid": "uuid", "name": "name", "refreshTime": "refresh_time"}
_COMMON_BOOL_FIELDS = {
    "isPublic": "is_public",
    "cacheEnabled": "cache_enabled",
    "pushEnabled": "push_enabled",
    "refreshAlways": "refresh_always",
}
_COMMON_INT_FIELDS = {"cacheMaxRows": "cache_max_rows", "pushMaxSize": "push_max_size"}
_CSV_STRING_FIELDS = {
    "filePath": "file_path",
    "fileURL": "file_url",
    "separatorChar": "separator_char",
    "quoteChar": "quote_char",
    "escapeChar": "escape_char",
    "datePattern": "date_pattern",
    "numberPattern": "number_pattern",
}
_CSV_BOOL_FIELDS = {"allColumns": "all_columns"}


class DataSetDefJSONCodec:
    """Serialize and parse data set definitions as JSON documents."""

    def to_json_string(self, definition: DataSetDef) -> str:
        """Serialize a definition into deterministic JSON text.

        Args:
            definition: Definition to serialize.

        Returns:
            JSON text with sorted keys.
        """
        return json.dumps(self.to_payload(definition), indent=2, sort_keys=True) + "\n"

    def to_payload(self, definition: DataSetDef) -> dict[str, Any]:
        """Build the JSON object for a definition.

        Args:
            definition: Definition to convert.

        Returns:
            JSON-compatible dictionary without location fields.
        """
        payload: dict[str, Any] = dict(definition.extra)
        payload["provider"] = definition.provider
        payload["isPublic"] = definition.is_public
        payload["cacheEnabled"] = definition.cache_enabled
        payload["cacheMaxRows"] = definition.cache_max_rows
        payload["pushEnabled"] = definition.push_enabled
        payload["pushMaxSize"] = definition.push_max_size
        payload["refreshAlways"] = definition.refresh_always
        _put_optional(payload, "uuid", definition.uuid)
        _put_optional(payload, "name", definition.name)
        _put_optional(payload, "refreshTime", definition.refresh_time)
        if isinstance(definition, CSVDataSetDef):
            for json_key, attribute in _CSV_STRING_FIELDS.items():
                _put_optional(payload, json_key, getattr(definition, attribute))
            payload["allColumns"] = definition.all_columns
        return payload

    def from_json(self, json_text: str) -> DataSetDef:
        """Parse a definition from JSON text.

        Args:
            json_text: Raw JSON document.

        Returns:
            Parsed definition; ``CSVDataSetDef`` for the CSV provider.

        Raises:
            DashbuilderParseError: If the document is malformed.
        """
        try:
            payload = json.loads(json_text)
        except json.JSONDecodeError as error:
            raise DashbuilderParseError(
                f"Failed to parse data set definition JSON: {error.msg} "
                f"(line {error.lineno}, column {error.colno})."
            ) from error
        except RecursionError as error:
            raise DashbuilderParseError(
                "Failed to parse data set definition JSON: nesting is too deep."
            ) from error
        if not isinstance(payload, dict):
            raise DashbuilderParseError(
                "Failed to parse data set definition JSON: expected object at top level."
            )
        return self.from_payload(payload)

    def from_payload(self, payload: Mapping[str, Any]) -> DataSetDef:
        """Build a definition from a decoded JSON object.

        Args:
            payload: Decoded JSON object.

        Returns:
            Parsed definition.

        Raises:
            DashbuilderParseError: If required fields are missing or mistyped.
        """
        remaining = dict(payload)
        provider = remaining.pop("provider", None)
        if not isinstance(provider, str) or not provider.strip():
            raise DashbuilderParseError(
                "Invalid data set definition: missing string field 'provider'. "
                "Set provider to a type such as BEAN, CSV or SQL."
            )
        provider = provider.strip().upper()
        fields: dict[str, Any] = {}
        _pop_typed(remaining, fields, _COMMON_STRING_FIELDS, str)
        _pop_typed(remaining, fields, _COMMON_BOOL_FIELDS, bool)
        _pop_typed(remaining, fields, _COMMON_INT_FIELDS, int)
        if provider == CSV_PROVIDER_TYPE:
            _pop_typed(remaining, fields, _CSV_STRING_FIELDS, str)
            _pop_typed(remaining, fields, _CSV_BOOL_FIELDS, bool)
            return CSVDataSetDef(uuid=fields.pop("uuid", None), extra=remaining, **fields)
        return DataSetDef(
            uuid=fields.pop("uuid", None),
            provider=provider,
            extra=remaining,
            **fields,
        )

    def definitions_equal(self, left: DataSetDef, right: DataSetDef) -> bool:
        """Compare two definitions by serialized document value.

        Args:
            left: First definition.
            right: Second definition.

        Returns:
            Whether both serialize to the same JSON document.
        """
        return self.to_payload(left) == self.to_payload(right)


def _put_optional(payload: dict[str, Any], key: str, value: object) -> None:
    if value is not None:
        payload[key] = value


def _pop_typed(
    remaining: dict[str, Any],
    fields: dict[str, Any],
    mapping: Mapping[str, str],
    expected_type: type,
) -> None:
    """Move known JSON keys into typed constructor fields.

    Args:
        remaining: Unconsumed payload keys, mutated in place.
        fields: Constructor keyword fields, mutated in place.
        mapping: JSON key to attribute name mapping.
        expected_type: Required Python type for the values.

    Raises:
        DashbuilderParseError: If a present value has the wrong type.
    """
    for json_key, attribute in mapping.items():
        if json_key not in remaining:
            continue
        value = remaining.pop(json_key)
        if value is None:
            continue
        # bool is an int subclass, reject it for integer fields
        if expected_type is int and isinstance(value, bool):
            value_ok = False
        else:
            value_ok = isinstance(value, expected_type)
        if not value_ok:
            raise DashbuilderParseError(
                f"Invalid data set definition field '{json_key}': expected "
                f"{expected_type.__name__}, got {type(value).__name__}."
            )
        fields[attribute] = value
