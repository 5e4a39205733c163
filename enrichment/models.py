"""Domain models for bulk entity enrichment.

Records are owned by the caller and never mutated. Everything else here is
derived per request and discarded once results are returned.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import RequestValidationError

Record = Any
"""A caller-owned domain object: a mapping or any object with an ``id``."""


class ColumnType(Enum):
    """Declared type of the enriched column."""

    BOOLEAN = "boolean"
    NUMBER = "number"
    TEXT = "text"

    @classmethod
    def parse(cls, value: ColumnType | str) -> ColumnType:
        """Accept an enum member or its (case-insensitive) string value."""
        if isinstance(value, ColumnType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise RequestValidationError(f"Invalid column type: {value!r}. Must be one of: {allowed}") from None


@dataclass(frozen=True)
class FieldValue:
    """One field returned by the caller's field-extraction function."""

    id: str
    label: str
    value: str


FieldExtractor = Callable[[Record], Sequence[FieldValue | Mapping[str, Any]]]


def record_id(record: Record) -> str:
    """Stable string id of a record ("" when the record has none)."""
    if isinstance(record, Mapping):
        value = record.get("id")
    else:
        value = getattr(record, "id", None)
    return "" if value is None else str(value)


@dataclass(frozen=True)
class EnrichmentRequest:
    """A single bulk enrichment invocation. Immutable while it runs."""

    items: tuple[Record, ...]
    template: str
    column_name: str
    column_type: ColumnType
    grounding_enabled: bool = False
    extract_fields: FieldExtractor | None = None

    @classmethod
    def create(
        cls,
        items: Sequence[Record] | None,
        template: str | None,
        column_name: str | None,
        column_type: ColumnType | str | None,
        grounding_enabled: bool = False,
        extract_fields: FieldExtractor | None = None,
    ) -> EnrichmentRequest:
        """Validate raw inputs and build a request.

        Raises:
            RequestValidationError: If any required input is missing or malformed
        """
        if not isinstance(items, (list, tuple)) or len(items) == 0:
            raise RequestValidationError("Invalid items format: expected a non-empty array")
        if not isinstance(template, str) or not template.strip():
            raise RequestValidationError("Invalid prompt template")
        if not isinstance(column_name, str) or not column_name.strip():
            raise RequestValidationError("Invalid column name")
        if column_type is None or (isinstance(column_type, str) and not column_type.strip()):
            raise RequestValidationError("Invalid column type")

        return cls(
            items=tuple(items),
            template=template,
            column_name=column_name,
            column_type=ColumnType.parse(column_type),
            grounding_enabled=bool(grounding_enabled),
            extract_fields=extract_fields,
        )


@dataclass(frozen=True)
class PreparedItem:
    """A record with its resolved prompt, or the reason it could not be prepared."""

    id: str
    record: Record
    prompt: str | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.prompt is not None


@dataclass(frozen=True)
class RawAnswer:
    """Parsed per-item answer text and the model that produced it."""

    item_id: str
    text: str
    source_model: str
    ambiguous: bool = False


@dataclass(frozen=True)
class Organization:
    """One entry of the grounding reference dataset."""

    name: str
    type: str | None = None
    emr_vendor_ambulatory: str | None = None
    emr_vendor_inpatient: str | None = None
    net_patient_revenue: float | None = None
    bed_count: int | None = None
    hospital_count: int | None = None
    website: str | None = None
    city: str | None = None
    state: str | None = None

    @property
    def location(self) -> str:
        return ", ".join(part for part in (self.city, self.state) if part)


@dataclass(frozen=True)
class GroundingMatch:
    """A reference organization matched to a name extracted from one item."""

    item_id: str
    candidate_name: str
    matched_entity: Organization


@dataclass
class EnrichmentResult:
    """Outcome for exactly one input record."""

    record: Record
    success: bool
    enriched_data: dict[str, Any] | None = None
    error: str | None = None
    raw_response: str | None = field(default=None, repr=False)

    @property
    def item_id(self) -> str:
        return record_id(self.record)

    @property
    def source(self) -> str | None:
        if self.enriched_data is None:
            return None
        return self.enriched_data.get("_source")

    @classmethod
    def succeeded(
        cls, record: Record, column_name: str, value: Any, source_model: str, raw_response: str | None = None
    ) -> EnrichmentResult:
        return cls(
            record=record,
            success=True,
            enriched_data={column_name: value, "_source": source_model},
            raw_response=raw_response,
        )

    @classmethod
    def failed(cls, record: Record, error: str | BaseException, raw_response: str | None = None) -> EnrichmentResult:
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
        else:
            message = error
        return cls(record=record, success=False, error=message, raw_response=raw_response)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape of one result: ``{item, success, enrichedData?, error?}``."""
        payload: dict[str, Any] = {"item": self.record, "success": self.success}
        if self.enriched_data is not None:
            payload["enrichedData"] = self.enriched_data
        if self.error is not None:
            payload["error"] = self.error
        return payload
