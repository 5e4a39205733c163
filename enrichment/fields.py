"""Field resolution for template variables.

Two lookup strategies are composed with a fixed precedence:

1. StructuredFieldLookup - the caller's field-extraction function, keyed by the
   lower-cased field id.
2. AttributeFieldLookup - the record's own attribute (or mapping key) under the
   variable's literal name.

A variable that neither strategy knows resolves to an empty string.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .models import FieldExtractor, FieldValue, Record

logger = logging.getLogger(__name__)

FieldMap = dict[str, str]


def _stringify(value: Any) -> str | None:
    """Render a field value for prompt substitution (None/"" mean absent)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    return text if text != "" else None


class StructuredFieldLookup:
    """Lookup over the caller-provided field map (case-insensitive keys)."""

    def __init__(self, field_map: FieldMap):
        self.field_map = field_map

    def get(self, variable: str) -> str | None:
        return _stringify(self.field_map.get(variable.strip().lower()))


class AttributeFieldLookup:
    """Lookup of the variable's literal name directly on the record."""

    def __init__(self, record: Record):
        self.record = record

    def get(self, variable: str) -> str | None:
        name = variable.strip()
        if isinstance(self.record, Mapping):
            return _stringify(self.record.get(name))
        return _stringify(getattr(self.record, name, None))


class FieldResolver:
    """Builds per-record field maps and resolves variables against them."""

    def __init__(self, extract_fields: FieldExtractor | None = None):
        self.extract_fields = extract_fields

    def resolve(self, record: Record) -> FieldMap:
        """Build the lower-cased ``id -> value`` map for one record.

        Exceptions raised by the extraction function propagate; the caller
        turns them into a preparation failure for this record only.
        """
        if self.extract_fields is None:
            return {}

        field_map: FieldMap = {}
        for raw_field in self.extract_fields(record) or []:
            field_value = self._coerce_field(raw_field)
            if field_value is None:
                continue
            field_map[field_value.id.lower()] = field_value.value
        return field_map

    def lookup(self, variable: str, field_map: FieldMap, record: Record) -> str:
        """Resolve one variable: structured map, then record attribute, then ""."""
        for strategy in (StructuredFieldLookup(field_map), AttributeFieldLookup(record)):
            value = strategy.get(variable)
            if value is not None:
                return value
        return ""

    @staticmethod
    def _coerce_field(raw_field: FieldValue | Mapping[str, Any]) -> FieldValue | None:
        if isinstance(raw_field, FieldValue):
            return raw_field
        if isinstance(raw_field, Mapping) and raw_field.get("id") is not None:
            value = raw_field.get("value")
            return FieldValue(
                id=str(raw_field["id"]),
                label=str(raw_field.get("label") or raw_field["id"]),
                value="" if value is None else str(value),
            )
        logger.debug(f"Ignoring malformed field entry: {raw_field!r}")
        return None
