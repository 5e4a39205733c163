"""Positional item-tagging convention shared by prompts and reply parsing.

Version 1 grammar (one reply block per item)::

    reply   := preamble? block*
    block   := header answer_line* delimiter?
    header  := "Item " INDEX " (ID: " ID "):" SP* FIRST_ANSWER_LINE
    delimiter := "---"

INDEX is the 1-based position of the item in the outbound prompt and ID is the
record id as sent (compared with surrounding whitespace trimmed). Answer text runs
until the next header, which may start mid-line.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

PROTOCOL_VERSION = "1"

ITEM_DELIMITER = "\n\n---\n\n"
DELIMITER_LINE = "---"

HEADER_PATTERN = re.compile(r"^\s*Item (\d+) \(ID: (.*?)\):[ \t]*(.*)$")

# Headers may also appear mid-line when a model answers several items on one line
HEADER_SEARCH_PATTERN = re.compile(r"Item (\d+) \(ID: (.*?)\):")


def format_item_header(index: int, item_id: str) -> str:
    return f"Item {index} (ID: {item_id}):"


def format_tagged_blocks(entries: Sequence[tuple[str, str]]) -> str:
    """Join ``(item_id, body)`` pairs into tagged blocks numbered from 1."""
    return ITEM_DELIMITER.join(
        f"{format_item_header(index, item_id)}\n{body}" for index, (item_id, body) in enumerate(entries, start=1)
    )


REPLY_FORMAT_INSTRUCTION = (
    'Always start your response to each item with "Item X (ID: [id]): " followed immediately by your answer.'
)
