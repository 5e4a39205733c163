"""Bulk Entity Enrichment Engine.

Pipeline per request:
- resolve fields and expand the template for every record
- partition valid items into fixed-size batches
- per batch: optional grounding, one primary completion, parse, escalate
  ambiguous boolean answers to the fallback model, coerce, collect
- concatenate per-batch results in batch order behind the preparation failures

Batches run under a semaphore sized by EngineConfig.max_concurrent_batches. Each batch
builds its own ResultAccumulator; nothing mutable is shared across batches.
Every input record yields exactly one result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .accumulator import ResultAccumulator
from .coercion import coerce, is_ambiguous
from .dispatcher import DEFAULT_BATCH_SIZE, Batch, BatchDispatcher, build_system_message
from .errors import (
    AmbiguousUnresolvedError,
    BatchDispatchError,
    CoercionError,
    CompletionTimeoutError,
    EnrichmentError,
    MissingAnswerError,
)
from .fields import FieldResolver
from .grounding import GroundingContext, GroundingMatcher, GroundingStatus
from .integration.completion import CompletionProvider, CompletionRequest, complete_with_deadline
from .integration.definitive_client import ReferenceDataset
from .models import (
    ColumnType,
    EnrichmentRequest,
    EnrichmentResult,
    FieldExtractor,
    PreparedItem,
    RawAnswer,
    Record,
)
from .parser import ResponseParser
from .protocol import format_tagged_blocks
from .templates import TemplateResolver

logger = logging.getLogger(__name__)

ItemOutcome = RawAnswer | EnrichmentError


@dataclass
class EngineConfig:
    """Models and limits for one engine instance"""

    primary_model: str = "gpt-3.5-turbo"
    fallback_model: str = "gpt-4o"
    extraction_model: str | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    max_concurrent_batches: int = 1
    completion_timeout: float | None = 60.0
    max_tokens: int = 1024
    temperature: float = 0.0

    def __post_init__(self) -> None:
        """Validate configuration"""
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_concurrent_batches <= 0:
            raise ValueError("max_concurrent_batches must be positive")
        if self.completion_timeout is not None and self.completion_timeout <= 0:
            raise ValueError("completion_timeout must be positive")
        if not self.primary_model or not self.fallback_model:
            raise ValueError("primary_model and fallback_model are required")

    @property
    def effective_extraction_model(self) -> str:
        return self.extraction_model or self.primary_model


@dataclass
class BatchOutcome:
    """Results of one batch plus the grounding context it was answered with"""

    batch_id: int
    results: ResultAccumulator
    grounding: GroundingContext = field(default_factory=GroundingContext.disabled)
    failed: bool = False


@dataclass
class PromptPreview:
    """Single-record dry run of a template"""

    result: EnrichmentResult
    match_info: str = ""


class EnrichmentEngine:
    """Orchestrates completion calls to derive one column value per record."""

    def __init__(
        self,
        provider: CompletionProvider,
        config: EngineConfig | None = None,
        reference_dataset: ReferenceDataset | None = None,
        parser: ResponseParser | None = None,
    ):
        self.provider = provider
        self.config = config or EngineConfig()
        self.reference_dataset = reference_dataset
        self.parser = parser or ResponseParser()

        self.stats: dict[str, Any] = {
            "total_requests": 0,
            "total_items": 0,
            "total_batches": 0,
            "successful_batches": 0,
            "failed_batches": 0,
            "escalated_items": 0,
            "escalation_failures": 0,
            "grounding_fallbacks": 0,
            "timeouts": 0,
            "total_time": 0.0,
        }

    async def enrich(self, request: EnrichmentRequest) -> list[EnrichmentResult]:
        """Enrich every record in the request.

        Returns:
            One result per input record: preparation failures first, then batch order
        """
        outcomes, preparation_failures = await self._run(request)
        accumulator = ResultAccumulator.concat([preparation_failures, *(o.results for o in outcomes)])
        return accumulator.ensure_complete(request.items).results

    async def preview(
        self,
        record: Record,
        template: str,
        column_name: str,
        column_type: ColumnType | str,
        grounding_enabled: bool = False,
        extract_fields: FieldExtractor | None = None,
    ) -> PromptPreview:
        """Run the full pipeline for a single record and report how grounding went."""
        request = EnrichmentRequest.create(
            items=[record],
            template=template,
            column_name=column_name,
            column_type=column_type,
            grounding_enabled=grounding_enabled,
            extract_fields=extract_fields,
        )
        outcomes, preparation_failures = await self._run(request)
        accumulator = ResultAccumulator.concat([preparation_failures, *(o.results for o in outcomes)])
        result = accumulator.ensure_complete(request.items).results[0]
        match_info = outcomes[0].grounding.describe() if outcomes else ""
        return PromptPreview(result=result, match_info=match_info)

    async def _run(self, request: EnrichmentRequest) -> tuple[list[BatchOutcome], ResultAccumulator]:
        start_time = time.time()
        self.stats["total_requests"] += 1
        self.stats["total_items"] += len(request.items)

        resolver = TemplateResolver(request.template, FieldResolver(request.extract_fields))
        prepared = resolver.prepare_all(request.items)

        preparation_failures = ResultAccumulator()
        for item in prepared:
            if not item.is_valid:
                preparation_failures.add_failure(item.record, item.error or "Error preparing item")

        dispatcher = BatchDispatcher(request.column_type, self.config.batch_size)
        batches = dispatcher.create_batches(prepared)

        grounding = await self._create_grounding_matcher(request) if batches else None
        outcomes = await self._process_all_batches(batches, request, dispatcher, grounding)

        elapsed = time.time() - start_time
        self.stats["total_time"] += elapsed
        self._log_request_summary(request, preparation_failures, outcomes, elapsed)
        return outcomes, preparation_failures

    async def _create_grounding_matcher(self, request: EnrichmentRequest) -> GroundingMatcher | None:
        """Fetch the reference dataset once for this request."""
        if not request.grounding_enabled:
            return None
        if self.reference_dataset is None:
            logger.warning("Grounding requested but no reference dataset is configured")
            return None

        try:
            organizations = await asyncio.to_thread(self.reference_dataset.list_organizations)
        except Exception as e:
            logger.error(f"Error fetching reference dataset, continuing without grounding: {e}")
            return None

        logger.info(f"Fetched {len(organizations)} organizations for grounding")
        if not organizations:
            return None

        return GroundingMatcher(
            provider=self.provider,
            organizations=organizations,
            model=self.config.effective_extraction_model,
            timeout=self.config.completion_timeout,
            parser=self.parser,
        )

    async def _process_all_batches(
        self,
        batches: list[Batch],
        request: EnrichmentRequest,
        dispatcher: BatchDispatcher,
        grounding: GroundingMatcher | None,
    ) -> list[BatchOutcome]:
        """Process batches under the concurrency limit; outcomes come back in batch order."""
        semaphore = asyncio.Semaphore(self.config.max_concurrent_batches)

        async def run(batch: Batch) -> BatchOutcome:
            async with semaphore:
                return await self._process_batch(batch, request, dispatcher, grounding)

        results = await asyncio.gather(*(run(batch) for batch in batches), return_exceptions=True)

        outcomes: list[BatchOutcome] = []
        for batch, result in zip(batches, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Batch {batch.batch_id} failed with exception: {result}")
                outcomes.append(self._failed_batch(batch, BatchDispatchError(str(result) or "Batch processing error")))
            else:
                outcomes.append(result)
        return outcomes

    async def _process_batch(
        self,
        batch: Batch,
        request: EnrichmentRequest,
        dispatcher: BatchDispatcher,
        grounding: GroundingMatcher | None,
    ) -> BatchOutcome:
        """Answer one batch; any failure of the primary call fails only this batch."""
        self.stats["total_batches"] += 1
        logger.info(f"Processing batch {batch.batch_id} ({len(batch)} items)")

        context = await grounding.ground(batch.items) if grounding else GroundingContext.disabled()
        if context.status is GroundingStatus.FALLBACK:
            self.stats["grounding_fallbacks"] += 1

        primary_request = CompletionRequest(
            model=self.config.primary_model,
            system_message=self._with_grounding(dispatcher.system_message(batch.items), context),
            user_message=dispatcher.user_message(batch.items),
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

        try:
            response = await complete_with_deadline(self.provider, primary_request, self.config.completion_timeout)
        except Exception as e:
            if isinstance(e, CompletionTimeoutError):
                self.stats["timeouts"] += 1
            logger.error(f"Error processing batch {batch.batch_id}: {e}")
            return self._failed_batch(batch, BatchDispatchError(str(e) or "Batch processing error"), context)

        reply = self.parser.parse(response.text, batch.item_ids)

        outcomes: dict[int, ItemOutcome] = {}
        ambiguous_positions: list[int] = []
        for position, item in enumerate(batch.items):
            text = reply.answer_for(position)
            if text is None:
                continue
            ambiguous = is_ambiguous(text, request.column_type)
            outcomes[position] = RawAnswer(
                item_id=item.id, text=text, source_model=self.config.primary_model, ambiguous=ambiguous
            )
            if ambiguous:
                ambiguous_positions.append(position)

        if ambiguous_positions:
            outcomes.update(await self._escalate(batch, ambiguous_positions, request.column_type, context))

        results = ResultAccumulator()
        for position, item in enumerate(batch.items):
            if position in outcomes:
                results.add(self._finalize(item, outcomes[position], request))
        for position in reply.missing_positions(len(batch)):
            results.add_failure(batch.items[position].record, MissingAnswerError())

        self.stats["successful_batches"] += 1
        logger.info(
            f"Batch {batch.batch_id} done: {results.success_count} succeeded, {results.failure_count} failed, "
            f"{len(ambiguous_positions)} escalated"
        )
        return BatchOutcome(batch_id=batch.batch_id, results=results, grounding=context)

    async def _escalate(
        self,
        batch: Batch,
        positions: Sequence[int],
        column_type: ColumnType,
        context: GroundingContext,
    ) -> dict[int, ItemOutcome]:
        """Re-ask only the ambiguous items of a batch, re-tagged from 1, on the fallback model."""
        items = [batch.items[p] for p in positions]
        self.stats["escalated_items"] += len(items)
        logger.info(
            f"Escalating {len(items)} ambiguous item(s) from batch {batch.batch_id} to {self.config.fallback_model}"
        )

        escalation_request = CompletionRequest(
            model=self.config.fallback_model,
            system_message=self._with_grounding(build_system_message(column_type, len(items)), context),
            user_message=format_tagged_blocks([(item.id, item.prompt or "") for item in items]),
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

        try:
            response = await complete_with_deadline(self.provider, escalation_request, self.config.completion_timeout)
        except Exception as e:
            if isinstance(e, CompletionTimeoutError):
                self.stats["timeouts"] += 1
            self.stats["escalation_failures"] += len(items)
            logger.error(f"Escalation call failed for batch {batch.batch_id}: {e}")
            return {p: AmbiguousUnresolvedError("No response from model") for p in positions}

        reply = self.parser.parse(response.text, [item.id for item in items])

        outcomes: dict[int, ItemOutcome] = {}
        for index, (position, item) in enumerate(zip(positions, items, strict=True)):
            text = reply.answer_for(index)
            if text is None:
                outcomes[position] = MissingAnswerError()
                continue
            outcomes[position] = RawAnswer(
                item_id=item.id,
                text=text,
                source_model=self.config.fallback_model,
                ambiguous=is_ambiguous(text, column_type),
            )
        return outcomes

    def _finalize(self, item: PreparedItem, outcome: ItemOutcome, request: EnrichmentRequest) -> EnrichmentResult:
        """Turn an item's final answer (or error) into its result."""
        if isinstance(outcome, EnrichmentError):
            return EnrichmentResult.failed(item.record, outcome)

        if outcome.ambiguous:
            self.stats["escalation_failures"] += 1
            error = AmbiguousUnresolvedError(f"Ambiguous answer after escalation: {outcome.text.strip()}")
            return EnrichmentResult.failed(item.record, error, raw_response=outcome.text)

        try:
            value = coerce(outcome.text, request.column_type)
        except CoercionError as e:
            return EnrichmentResult.failed(item.record, e, raw_response=outcome.text)

        return EnrichmentResult.succeeded(
            item.record, request.column_name, value, outcome.source_model, raw_response=outcome.text
        )

    def _failed_batch(
        self, batch: Batch, error: EnrichmentError, context: GroundingContext | None = None
    ) -> BatchOutcome:
        self.stats["failed_batches"] += 1
        results = ResultAccumulator()
        for item in batch.items:
            results.add_failure(item.record, error)
        return BatchOutcome(
            batch_id=batch.batch_id,
            results=results,
            grounding=context or GroundingContext.disabled(),
            failed=True,
        )

    @staticmethod
    def _with_grounding(system_message: str, context: GroundingContext) -> str:
        if not context.text:
            return system_message
        return f"{system_message}\n\n{context.text}"

    def _log_request_summary(
        self,
        request: EnrichmentRequest,
        preparation_failures: ResultAccumulator,
        outcomes: list[BatchOutcome],
        elapsed: float,
    ) -> None:
        succeeded = sum(o.results.success_count for o in outcomes)
        failed = len(preparation_failures) + sum(o.results.failure_count for o in outcomes)
        failed_batches = sum(1 for o in outcomes if o.failed)
        logger.info(f"""Enrichment of '{request.column_name}' ({request.column_type.value}) finished:
- Items: {len(request.items)}
- Succeeded: {succeeded}
- Failed: {failed} ({len(preparation_failures)} during preparation)
- Batches: {len(outcomes)} ({failed_batches} failed)
- Elapsed: {elapsed:.2f}s""")

    def get_statistics(self) -> dict[str, Any]:
        """Get cumulative engine statistics"""
        return self.stats.copy()
