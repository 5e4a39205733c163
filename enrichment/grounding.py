"""Grounding against a reference dataset of known organizations.

For each batch, one extraction call asks the model for the most prominent
organization name in every item. Extracted names are matched against the
dataset (exact, then bidirectional containment) and the matches are rendered
as a "known facts" block appended to the system message of the main call.

Extraction problems never fail the batch: the context degrades to a generic
healthcare hint.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from .integration.completion import CompletionProvider, CompletionRequest, complete_with_deadline
from .models import GroundingMatch, Organization, PreparedItem
from .parser import ResponseParser
from .protocol import REPLY_FORMAT_INSTRUCTION, format_tagged_blocks

logger = logging.getLogger(__name__)

NO_EXTRACTION = "NO_EXTRACTION_POSSIBLE"
MAX_MATCHES_PER_NAME = 2

EXTRACTION_SYSTEM_MESSAGE = (
    "You are an extraction assistant. For each item, extract the name of any health system, hospital, "
    "or healthcare organization mentioned.\n"
    "Return ONLY the extracted name for each item with no additional text or explanation. "
    "If multiple names are mentioned, return the most prominent one.\n"
    f'If no organization name is mentioned, respond with "{NO_EXTRACTION}".\n'
    f"{REPLY_FORMAT_INSTRUCTION}"
)

GENERIC_GROUNDING = (
    "You have access to healthcare system data. Consider healthcare-specific factors when analyzing these items."
)


class GroundingStatus(Enum):
    """How the grounding context for a batch was produced"""

    DISABLED = "disabled"
    MATCHED = "matched"
    NO_MATCH = "no_match"
    FALLBACK = "fallback"


@dataclass
class GroundingContext:
    """System-message addendum for one batch; discarded with the batch."""

    status: GroundingStatus
    text: str = ""
    matches: list[GroundingMatch] = field(default_factory=list)
    extracted_names: dict[str, str] = field(default_factory=dict)

    @classmethod
    def disabled(cls) -> GroundingContext:
        return cls(status=GroundingStatus.DISABLED)

    def describe(self) -> str:
        """Human-readable trace of extraction and matching, for prompt previews."""
        if self.status is GroundingStatus.DISABLED:
            return ""
        lines = [f"Extraction Result: {name}" for name in self.extracted_names.values()] or [
            "Extraction Result: none"
        ]
        if self.status is GroundingStatus.MATCHED:
            lines.append(f"Final Matches: {', '.join(dict.fromkeys(m.matched_entity.name for m in self.matches))}")
        elif self.status is GroundingStatus.NO_MATCH:
            lines.append("No matches found in the database")
        else:
            lines.append("Extraction failed; using generic grounding")
        return "\n".join(lines)


def match_organizations(
    name: str, organizations: Sequence[Organization], limit: int = MAX_MATCHES_PER_NAME
) -> list[Organization]:
    """Find reference organizations for one extracted name.

    Exact case-insensitive equality wins; otherwise either name containing the
    other counts. At most ``limit`` matches are returned, in dataset order.
    """
    needle = name.strip().lower()
    if not needle:
        return []

    exact = [org for org in organizations if org.name.strip().lower() == needle]
    if exact:
        return exact[:limit]

    contained = []
    for org in organizations:
        candidate = org.name.strip().lower()
        if candidate and (needle in candidate or candidate in needle):
            contained.append(org)
            if len(contained) >= limit:
                break
    return contained


def _format_revenue(value: float | None) -> str:
    if value is None:
        return "Unknown"
    if float(value).is_integer():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def _known(value: object) -> str:
    return "Unknown" if value is None or value == "" else str(value)


def render_known_facts(matches: Sequence[GroundingMatch]) -> str:
    """Render matched organizations grouped by item id."""
    by_item: dict[str, list[Organization]] = {}
    for match in matches:
        by_item.setdefault(match.item_id, []).append(match.matched_entity)

    parts = [
        "You have access to healthcare system data from Definitive Healthcare. "
        "Here is information about specific health systems relevant to these items:\n"
    ]
    for item_id, organizations in by_item.items():
        parts.append(f"For item ID {item_id}:")
        for org in organizations:
            parts.append(
                f"- {org.name}\n"
                f"  - Type: {_known(org.type)}\n"
                f"  - EMR Vendor (Ambulatory): {_known(org.emr_vendor_ambulatory)}\n"
                f"  - EMR Vendor (Inpatient): {_known(org.emr_vendor_inpatient)}\n"
                f"  - Net Patient Revenue: {_format_revenue(org.net_patient_revenue)}\n"
                f"  - Number of Beds: {_known(org.bed_count)}\n"
                f"  - Number of Hospitals: {_known(org.hospital_count)}\n"
                f"  - Website: {_known(org.website)}\n"
                f"  - Location: {org.location or 'Unknown'}\n"
            )
    parts.append(
        "Use this information to help with your classifications. "
        "Don't explicitly mention that you're using Definitive Healthcare data in your response."
    )
    return "\n".join(parts)


def render_no_match(dataset_size: int) -> str:
    return (
        f"You checked a database of {dataset_size} health systems and did not find any matches for the "
        "organizations mentioned. Please use your general knowledge to answer the questions."
    )


class GroundingMatcher:
    """Builds per-batch grounding context from one extraction call."""

    def __init__(
        self,
        provider: CompletionProvider,
        organizations: Sequence[Organization],
        model: str,
        timeout: float | None = None,
        parser: ResponseParser | None = None,
    ):
        self.provider = provider
        self.organizations = list(organizations)
        self.model = model
        self.timeout = timeout
        self.parser = parser or ResponseParser()

    @property
    def enabled(self) -> bool:
        return bool(self.organizations)

    def extraction_request(self, items: Sequence[PreparedItem]) -> CompletionRequest:
        user_message = format_tagged_blocks(
            [(item.id, f"Extract company/organization names from: {item.prompt or ''}") for item in items]
        )
        return CompletionRequest(
            model=self.model,
            system_message=EXTRACTION_SYSTEM_MESSAGE,
            user_message=user_message,
            max_tokens=500,
            temperature=0.1,
        )

    async def ground(self, items: Sequence[PreparedItem]) -> GroundingContext:
        """Extract names for a batch and match them; never raises."""
        if not self.enabled or not items:
            return GroundingContext.disabled()

        try:
            response = await complete_with_deadline(self.provider, self.extraction_request(items), self.timeout)
            reply = self.parser.parse(response.text, [item.id for item in items])
        except Exception as e:
            logger.warning(f"Error extracting organization names, using generic grounding: {e}")
            return GroundingContext(status=GroundingStatus.FALLBACK, text=GENERIC_GROUNDING)

        extracted: dict[str, str] = {}
        matches: list[GroundingMatch] = []
        for position, item in enumerate(items):
            name = (reply.answer_for(position) or "").strip()
            if not name or name.upper() == NO_EXTRACTION:
                continue
            extracted[item.id] = name
            for org in match_organizations(name, self.organizations):
                matches.append(GroundingMatch(item_id=item.id, candidate_name=name, matched_entity=org))

        logger.info(
            f"Grounding: extracted {len(extracted)} name(s), {len(matches)} match(es) "
            f"against {len(self.organizations)} organizations"
        )

        if matches:
            return GroundingContext(
                status=GroundingStatus.MATCHED,
                text=render_known_facts(matches),
                matches=matches,
                extracted_names=extracted,
            )
        return GroundingContext(
            status=GroundingStatus.NO_MATCH,
            text=render_no_match(len(self.organizations)),
            extracted_names=extracted,
        )
