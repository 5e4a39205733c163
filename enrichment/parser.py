"""Reply parser for the positional item-tagging convention.

Parsing is line-oriented and fails closed: a block whose header cannot be
tied to an item that was sent is kept as an unparsed fragment, and the item
it might have belonged to is reported missing instead of guessed at.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .protocol import DELIMITER_LINE, HEADER_SEARCH_PATTERN, PROTOCOL_VERSION

logger = logging.getLogger(__name__)


@dataclass
class _Block:
    index: int
    item_id: str
    header: str
    lines: list[str]

    @property
    def text(self) -> str:
        lines = list(self.lines)
        while lines and lines[-1].strip() in ("", DELIMITER_LINE):
            lines.pop()
        return "\n".join(lines).strip()

    @property
    def raw(self) -> str:
        """The block as it appeared in the reply: header, then answer lines."""
        first, *rest = self.lines
        return "\n".join([f"{self.header} {first}".strip(), *rest]).strip()


@dataclass
class ParsedReply:
    """Answers keyed by position in the outbound prompt (0-based)."""

    answers: dict[int, str] = field(default_factory=dict)
    unparsed: list[str] = field(default_factory=list)
    preamble: str = ""

    def answer_for(self, position: int) -> str | None:
        return self.answers.get(position)

    def missing_positions(self, expected_count: int) -> list[int]:
        return [pos for pos in range(expected_count) if pos not in self.answers]


class ResponseParser:
    """Parses completion text against the ids that were sent, in order."""

    version = PROTOCOL_VERSION

    def parse(self, text: str, expected_ids: Sequence[str]) -> ParsedReply:
        blocks, preamble = self._split_blocks(text or "")
        reply = ParsedReply(preamble="\n".join(preamble).strip())

        for block in blocks:
            position = self._resolve_position(block, expected_ids, reply.answers)
            if position is None:
                reply.unparsed.append(block.raw)
                continue
            reply.answers[position] = block.text

        if reply.unparsed:
            logger.warning(f"Reply contained {len(reply.unparsed)} fragment(s) that match no pending item")
        if reply.preamble:
            logger.debug(f"Ignoring reply preamble: {reply.preamble[:200]}")

        return reply

    @staticmethod
    def _split_blocks(text: str) -> tuple[list[_Block], list[str]]:
        """Cut the reply at every header, including headers that start mid-line."""
        blocks: list[_Block] = []
        preamble: list[str] = []

        def append(line: str) -> None:
            if blocks:
                blocks[-1].lines.append(line)
            else:
                preamble.append(line)

        for line in text.splitlines():
            matches = list(HEADER_SEARCH_PATTERN.finditer(line))
            if not matches:
                append(line)
                continue

            leading = line[: matches[0].start()]
            if leading.strip():
                append(leading.rstrip())

            for n, match in enumerate(matches):
                end = matches[n + 1].start() if n + 1 < len(matches) else len(line)
                blocks.append(
                    _Block(
                        index=int(match.group(1)),
                        item_id=match.group(2).strip(),
                        header=match.group(0),
                        lines=[line[match.end() : end].strip()],
                    )
                )

        return blocks, preamble

    @staticmethod
    def _resolve_position(block: _Block, expected_ids: Sequence[str], taken: dict[int, str]) -> int | None:
        """Tie a block to a pending item by (index, id), falling back to id alone."""
        ids = [item_id.strip() for item_id in expected_ids]

        position = block.index - 1
        if 0 <= position < len(ids) and ids[position] == block.item_id and position not in taken:
            return position

        for candidate, item_id in enumerate(ids):
            if item_id == block.item_id and candidate not in taken:
                logger.debug(f"Reply tagged item {block.item_id} as #{block.index}, expected #{candidate + 1}")
                return candidate

        return None
