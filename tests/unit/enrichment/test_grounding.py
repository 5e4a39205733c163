"""Tests for grounding against the reference dataset.

Tests cover:
- Exact and containment matching with the per-name cap
- Known-facts and no-match rendering
- GroundingMatcher extraction calls and their failure modes
"""

from __future__ import annotations

import pytest

from enrichment.grounding import (
    GENERIC_GROUNDING,
    NO_EXTRACTION,
    GroundingContext,
    GroundingMatcher,
    GroundingStatus,
    match_organizations,
    render_known_facts,
    render_no_match,
)
from enrichment.models import GroundingMatch, Organization, PreparedItem
from tests.fixtures.fakes import ScriptedProvider, reply_with


def make_items(*prompts: str) -> list[PreparedItem]:
    return [PreparedItem(id=f"i{n}", record={"id": f"i{n}"}, prompt=p) for n, p in enumerate(prompts, start=1)]


class TestMatchOrganizations:
    """Tests for match_organizations."""

    def test_exact_match_wins_over_containment(self, sample_organizations):
        matches = match_organizations("mercy health", sample_organizations)
        assert [org.name for org in matches] == ["Mercy Health"]

    def test_containment_in_either_direction(self, sample_organizations):
        assert [o.name for o in match_organizations("Riverside", sample_organizations)] == [
            "Riverside Health System"
        ]
        assert [o.name for o in match_organizations("The Riverside Health System Inc", sample_organizations)] == [
            "Riverside Health System"
        ]

    def test_capped_at_two_matches(self, sample_organizations):
        matches = match_organizations("Mercy", sample_organizations)
        assert [org.name for org in matches] == ["Mercy Health", "Mercy Health System of Maine"]

    def test_no_match(self, sample_organizations):
        assert match_organizations("Acme Widgets", sample_organizations) == []
        assert match_organizations("   ", sample_organizations) == []


class TestRendering:
    """Tests for grounding text rendering."""

    def test_known_facts_grouped_by_item(self, sample_organizations):
        text = render_known_facts([GroundingMatch("i1", "Mercy Health", sample_organizations[0])])

        assert "For item ID i1:" in text
        assert "- Mercy Health" in text
        assert "EMR Vendor (Inpatient): Epic" in text
        assert "Net Patient Revenue: $5,400,000,000" in text
        assert "Number of Beds: 4000" in text
        assert "Location: Cincinnati, OH" in text
        assert "Don't explicitly mention" in text

    def test_unknown_values(self):
        text = render_known_facts([GroundingMatch("i1", "x", Organization(name="Bare"))])

        assert "Type: Unknown" in text
        assert "Net Patient Revenue: Unknown" in text
        assert "Location: Unknown" in text

    def test_no_match_mentions_dataset_size(self):
        assert "You checked a database of 4 health systems" in render_no_match(4)

    def test_describe(self, sample_organizations):
        context = GroundingContext(
            status=GroundingStatus.MATCHED,
            matches=[GroundingMatch("i1", "Mercy", sample_organizations[0])],
            extracted_names={"i1": "Mercy"},
        )
        assert context.describe() == "Extraction Result: Mercy\nFinal Matches: Mercy Health"
        assert GroundingContext.disabled().describe() == ""


class TestGroundingMatcher:
    """Tests for GroundingMatcher.ground."""

    @pytest.mark.asyncio
    async def test_matches_extracted_names(self, sample_organizations):
        names = {"i1": "Mercy Health", "i2": NO_EXTRACTION}
        provider = ScriptedProvider(reply_with(lambda item_id, body: names[item_id]))
        matcher = GroundingMatcher(provider, sample_organizations, model="gpt-3.5-turbo")

        context = await matcher.ground(make_items("Is Mercy Health a hospital?", "Is Acme a hospital?"))

        assert context.status is GroundingStatus.MATCHED
        assert [m.item_id for m in context.matches] == ["i1"]
        assert context.extracted_names == {"i1": "Mercy Health"}
        assert "For item ID i1:" in context.text
        assert "For item ID i2:" not in context.text

    @pytest.mark.asyncio
    async def test_one_extraction_call_per_batch(self, sample_organizations):
        provider = ScriptedProvider(reply_with(lambda item_id, body: NO_EXTRACTION))
        matcher = GroundingMatcher(provider, sample_organizations, model="extractor")

        await matcher.ground(make_items("a", "b", "c"))

        assert len(provider.calls) == 1
        call = provider.calls[0]
        assert call.model == "extractor"
        assert call.max_tokens == 500
        assert call.temperature == 0.1
        assert "Item 3 (ID: i3):\nExtract company/organization names from: c" in call.user_message

    @pytest.mark.asyncio
    async def test_no_match_context(self, sample_organizations):
        provider = ScriptedProvider(reply_with(lambda item_id, body: "Acme Widgets"))
        matcher = GroundingMatcher(provider, sample_organizations, model="m")

        context = await matcher.ground(make_items("Acme?"))

        assert context.status is GroundingStatus.NO_MATCH
        assert context.text == render_no_match(len(sample_organizations))

    @pytest.mark.asyncio
    async def test_extraction_failure_falls_back_to_generic(self, sample_organizations):
        def fail(request):
            raise ConnectionError("network down")

        matcher = GroundingMatcher(ScriptedProvider(fail), sample_organizations, model="m")

        context = await matcher.ground(make_items("Mercy?"))

        assert context.status is GroundingStatus.FALLBACK
        assert context.text == GENERIC_GROUNDING

    @pytest.mark.asyncio
    async def test_extraction_timeout_falls_back_to_generic(self, sample_organizations):
        provider = ScriptedProvider(reply_with(lambda item_id, body: "Mercy Health"), delay=0.5)
        matcher = GroundingMatcher(provider, sample_organizations, model="m", timeout=0.01)

        context = await matcher.ground(make_items("Mercy?"))

        assert context.status is GroundingStatus.FALLBACK

    @pytest.mark.asyncio
    async def test_empty_dataset_disables_grounding(self):
        provider = ScriptedProvider()
        matcher = GroundingMatcher(provider, [], model="m")

        context = await matcher.ground(make_items("x"))

        assert context.status is GroundingStatus.DISABLED
        assert provider.calls == []
