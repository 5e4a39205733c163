"""
Enrichment Router - Bulk AI enrichment endpoints.

This router exposes the EnrichmentEngine over HTTP:
- POST /api/ai/enrich: derive one column value for many records
- POST /api/ai/test-prompt: preview a template against a single record

Persistence is the caller's job: accepted values are only returned.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from enrichment.engine import EnrichmentEngine
from enrichment.errors import RequestValidationError
from enrichment.models import EnrichmentRequest, FieldExtractor, FieldValue, record_id

from ..dependencies import get_engine
from ..schemas import EnrichRequest, FieldValueSchema, TestPromptRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["enrichment"])


def build_field_extractor(item_fields: Mapping[str, list[FieldValueSchema]] | None) -> FieldExtractor | None:
    """Field-extraction function backed by per-record field lists sent with the request."""
    if not item_fields:
        return None

    fields_by_id = {str(key): [f.to_field_value() for f in fields] for key, fields in item_fields.items()}

    def extract(record: Any) -> list[FieldValue]:
        return fields_by_id.get(record_id(record), [])

    return extract


@router.post("/enrich")
async def enrich(body: EnrichRequest, engine: EnrichmentEngine = Depends(get_engine)) -> dict[str, Any]:
    """Enrich a collection of records with one AI-derived column."""
    try:
        request = EnrichmentRequest.create(
            items=body.items,
            template=body.prompt_template,
            column_name=body.column_name,
            column_type=body.column_type,
            grounding_enabled=body.include_grounding_data,
            extract_fields=build_field_extractor(body.item_fields),
        )
    except RequestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(
        f"Enrichment request: {len(request.items)} items, column '{request.column_name}' "
        f"({request.column_type.value}), grounding={request.grounding_enabled}"
    )

    try:
        results = await engine.enrich(request)
    except Exception as e:
        logger.exception(f"Error in AI enrichment: {e}")
        raise HTTPException(status_code=500, detail="An error occurred processing your request") from e

    return {"results": [result.to_dict() for result in results]}


@router.post("/test-prompt")
async def test_prompt(body: TestPromptRequest, engine: EnrichmentEngine = Depends(get_engine)) -> dict[str, Any]:
    """Run a template against one record and show the raw answer and grounding trace."""
    if not isinstance(body.item, Mapping):
        raise HTTPException(status_code=400, detail="Invalid item format")

    extract_fields = build_field_extractor({record_id(body.item): body.fields}) if body.fields else None

    try:
        preview = await engine.preview(
            record=body.item,
            template=body.prompt_template,
            column_name=body.column_name,
            column_type=body.column_type,
            grounding_enabled=body.include_grounding_data,
            extract_fields=extract_fields,
        )
    except RequestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Error testing AI prompt: {e}")
        raise HTTPException(status_code=500, detail="An error occurred processing your request") from e

    result = preview.result
    column_value = result.enriched_data.get(body.column_name) if result.enriched_data else None
    return {
        "success": result.success,
        "result": column_value,
        "rawResponse": result.raw_response,
        "matchInfo": preview.match_info or None,
        "source": result.source,
        "error": result.error,
    }
