"""Result accumulation.

Each stage receives an accumulator and returns it; batches build their own
and are concatenated in batch order, so concurrent batches never share a list.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .errors import MissingAnswerError
from .models import EnrichmentResult, Record, record_id

logger = logging.getLogger(__name__)


@dataclass
class ResultAccumulator:
    """Append-only, ordered list of per-record results."""

    results: list[EnrichmentResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[EnrichmentResult]:
        return iter(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count

    def add(self, result: EnrichmentResult) -> ResultAccumulator:
        self.results.append(result)
        return self

    def add_failure(
        self, record: Record, error: str | BaseException, raw_response: str | None = None
    ) -> ResultAccumulator:
        return self.add(EnrichmentResult.failed(record, error, raw_response))

    @classmethod
    def concat(cls, parts: Iterable[ResultAccumulator]) -> ResultAccumulator:
        combined = cls()
        for part in parts:
            combined.results.extend(part.results)
        return combined

    def ensure_complete(self, records: Iterable[Record]) -> ResultAccumulator:
        """Guarantee one result per input record.

        Records with fewer results than occurrences in the input get a missing-answer
        failure; surplus results for an id are dropped (the earliest ones are kept).
        """
        records = list(records)
        expected = Counter(record_id(r) for r in records)
        seen: Counter[str] = Counter()

        kept: list[EnrichmentResult] = []
        for result in self.results:
            item_id = result.item_id
            if seen[item_id] >= expected[item_id]:
                logger.error(f"Dropping surplus result for item {item_id}")
                continue
            seen[item_id] += 1
            kept.append(result)

        for record in records:
            item_id = record_id(record)
            if seen[item_id] < expected[item_id]:
                logger.error(f"No result recorded for item {item_id}; marking as failed")
                kept.append(EnrichmentResult.failed(record, MissingAnswerError()))
                seen[item_id] += 1

        return ResultAccumulator(results=kept)
