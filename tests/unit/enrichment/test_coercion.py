"""Tests for ambiguity detection and answer coercion."""

from __future__ import annotations

import pytest

from enrichment.coercion import coerce, is_ambiguous, parse_number
from enrichment.errors import CoercionError
from enrichment.models import ColumnType


class TestIsAmbiguous:
    """Tests for is_ambiguous."""

    @pytest.mark.parametrize("text", ["yes", "No", "  YES  ", "no\n"])
    def test_boolean_answers_are_clear(self, text):
        assert is_ambiguous(text, ColumnType.BOOLEAN) is False

    @pytest.mark.parametrize("text", ["maybe", "Yes, it is", "", None, "unknown"])
    def test_anything_else_is_ambiguous_for_booleans(self, text):
        assert is_ambiguous(text, ColumnType.BOOLEAN) is True

    @pytest.mark.parametrize("column_type", [ColumnType.NUMBER, ColumnType.TEXT])
    def test_other_types_are_never_ambiguous(self, column_type):
        assert is_ambiguous("maybe", column_type) is False


class TestCoerce:
    """Tests for coerce and parse_number."""

    def test_boolean(self):
        assert coerce(" Yes ", ColumnType.BOOLEAN) is True
        assert coerce("no", ColumnType.BOOLEAN) is False

    @pytest.mark.parametrize(
        "text, expected",
        [("42", 42.0), ("3.5", 3.5), ("-7", -7.0), ("1,234", 1234.0), ("1,2", 12.0), ("42 beds", 42.0), (".5", 0.5)],
    )
    def test_number_prefixes(self, text, expected):
        assert parse_number(text) == expected

    @pytest.mark.parametrize("text", ["abc", "", "about 40", "N/A", "Infinity", "NaN"])
    def test_non_numeric_answer_raises(self, text):
        with pytest.raises(CoercionError, match="AI did not return a valid number"):
            coerce(text, ColumnType.NUMBER)

    def test_text_is_trimmed(self):
        assert coerce("  A regional health system.  ", ColumnType.TEXT) == "A regional health system."
