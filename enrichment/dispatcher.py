"""Batch dispatch - partitions prepared items and builds one prompt per batch."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

from .models import ColumnType, PreparedItem
from .protocol import REPLY_FORMAT_INSTRUCTION, format_tagged_blocks

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 15

TYPE_INSTRUCTIONS = {
    ColumnType.BOOLEAN: "Respond with only yes or no.",
    ColumnType.NUMBER: "Respond with only a single number.",
    ColumnType.TEXT: "Provide a concise, informative response.",
}


def chunk(items: Sequence[T], size: int = DEFAULT_BATCH_SIZE) -> list[list[T]]:
    """Split items into consecutive slices of ``size``; the last may be shorter."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def build_system_message(column_type: ColumnType, item_count: int) -> str:
    """System instruction mandating the positional reply format."""
    return (
        f"You are an AI assistant helping to enrich data. {TYPE_INSTRUCTIONS[column_type]}\n"
        f"Answer each of the following {item_count} items independently; "
        "never let the content of one item affect the answer to another.\n"
        "For each item, provide only the answer with no explanation or reasoning.\n"
        f"{REPLY_FORMAT_INSTRUCTION}\n"
        "Keep your answers as concise as possible."
    )


def format_batch_prompt(items: Sequence[PreparedItem]) -> str:
    """User message: one ``Item n (ID: id):`` block per item, numbered from 1."""
    return format_tagged_blocks([(item.id, item.prompt or "") for item in items])


@dataclass(frozen=True)
class Batch:
    """Ordered slice of valid prepared items; the unit of failure."""

    batch_id: int
    items: tuple[PreparedItem, ...]

    def __len__(self) -> int:
        return len(self.items)

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]


class BatchDispatcher:
    """Partitions prepared items into batches and renders their prompts."""

    def __init__(self, column_type: ColumnType, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.column_type = column_type
        self.batch_size = batch_size

    def create_batches(self, items: Sequence[PreparedItem]) -> list[Batch]:
        valid = [item for item in items if item.is_valid]
        batches = [Batch(batch_id=i, items=tuple(group)) for i, group in enumerate(chunk(valid, self.batch_size))]
        logger.info(f"Created {len(batches)} batches from {len(valid)} items (batch size {self.batch_size})")
        return batches

    def system_message(self, items: Sequence[PreparedItem]) -> str:
        return build_system_message(self.column_type, len(items))

    def user_message(self, items: Sequence[PreparedItem]) -> str:
        return format_batch_prompt(items)
