"""
Pydantic schemas for enrichment endpoints.

Request bodies are deliberately permissive: required-field checks happen in
EnrichmentRequest.create so every violation comes back as a 400 with a
descriptive message rather than a generic schema error.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from enrichment.models import FieldValue


class FieldValueSchema(BaseModel):
    """One field of a record as rendered by the caller."""

    id: str
    label: str = ""
    value: Any = None

    def to_field_value(self) -> FieldValue:
        return FieldValue(id=self.id, label=self.label or self.id, value="" if self.value is None else str(self.value))


class EnrichRequest(BaseModel):
    """POST /api/ai/enrich body."""

    model_config = ConfigDict(populate_by_name=True)

    items: Any = None
    prompt_template: Any = Field(default=None, alias="promptTemplate")
    column_name: Any = Field(default=None, alias="columnName")
    column_type: Any = Field(default=None, alias="columnType")
    include_grounding_data: bool = Field(default=False, alias="includeGroundingData")
    item_fields: dict[str, list[FieldValueSchema]] | None = Field(default=None, alias="itemFields")
    """Optional per-record field values keyed by record id, used before raw attributes."""


class TestPromptRequest(BaseModel):
    """POST /api/ai/test-prompt body."""

    model_config = ConfigDict(populate_by_name=True)

    item: Any = None
    prompt_template: Any = Field(default=None, alias="promptTemplate")
    column_name: Any = Field(default=None, alias="columnName")
    column_type: Any = Field(default=None, alias="columnType")
    include_grounding_data: bool = Field(default=False, alias="includeGroundingData")
    fields: list[FieldValueSchema] | None = None
