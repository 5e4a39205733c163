"""Ambiguity checks and type coercion for raw answer text."""

from __future__ import annotations

import re

from .errors import CoercionError
from .models import ColumnType

BOOLEAN_ANSWERS = frozenset({"yes", "no"})

# Leading numeric prefix, so "42 beds" parses as 42
NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def is_ambiguous(text: str | None, column_type: ColumnType) -> bool:
    """Whether an answer fails the column type's validity rule.

    Only boolean columns are checked. Number and text answers are never
    escalated; a bad number surfaces later as a coercion error.
    """
    if column_type is not ColumnType.BOOLEAN:
        return False
    return (text or "").strip().lower() not in BOOLEAN_ANSWERS


def parse_number(text: str) -> float:
    """Leading number of an answer. Commas are read as thousands separators; Infinity and NaN are rejected."""
    match = NUMBER_PREFIX.match(text.strip().replace(",", ""))
    if match is None:
        raise CoercionError("AI did not return a valid number")
    return float(match.group(0))


def coerce(text: str, column_type: ColumnType) -> bool | float | str:
    """Convert a raw answer to the column's typed value.

    Raises:
        CoercionError: If a number column's answer is not numeric
    """
    if column_type is ColumnType.BOOLEAN:
        return text.strip().lower() == "yes"
    if column_type is ColumnType.NUMBER:
        return parse_number(text)
    return text.strip()
