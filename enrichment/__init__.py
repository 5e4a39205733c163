"""
Enrichment - Bulk entity enrichment through LLM completion calls.

This package contains:
- models: Request, record and result types
- templates/fields: {{variable}} resolution against records
- dispatcher/protocol/parser: batched prompts and the positional reply contract
- grounding: reference-dataset matching for organization facts
- engine: the orchestrating EnrichmentEngine
"""

from enrichment.accumulator import ResultAccumulator
from enrichment.coercion import coerce, is_ambiguous
from enrichment.dispatcher import BatchDispatcher, chunk
from enrichment.engine import EngineConfig, EnrichmentEngine, PromptPreview
from enrichment.errors import (
    AmbiguousUnresolvedError,
    BatchDispatchError,
    CoercionError,
    CompletionTimeoutError,
    EnrichmentError,
    MissingAnswerError,
    PreparationError,
    RequestValidationError,
)
from enrichment.fields import FieldResolver
from enrichment.grounding import GroundingMatcher, match_organizations
from enrichment.models import (
    ColumnType,
    EnrichmentRequest,
    EnrichmentResult,
    FieldValue,
    GroundingMatch,
    Organization,
    PreparedItem,
    RawAnswer,
)
from enrichment.parser import ResponseParser
from enrichment.templates import TemplateResolver, expand_template, find_variables

__all__ = [
    "AmbiguousUnresolvedError",
    "BatchDispatchError",
    "BatchDispatcher",
    "CoercionError",
    "ColumnType",
    "CompletionTimeoutError",
    "EngineConfig",
    "EnrichmentEngine",
    "EnrichmentError",
    "EnrichmentRequest",
    "EnrichmentResult",
    "FieldResolver",
    "FieldValue",
    "GroundingMatch",
    "GroundingMatcher",
    "MissingAnswerError",
    "Organization",
    "PreparationError",
    "PreparedItem",
    "PromptPreview",
    "RawAnswer",
    "RequestValidationError",
    "ResponseParser",
    "ResultAccumulator",
    "TemplateResolver",
    "chunk",
    "coerce",
    "expand_template",
    "find_variables",
    "is_ambiguous",
    "match_organizations",
]
