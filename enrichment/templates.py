"""Template expansion for ``{{variable}}`` placeholders."""

from __future__ import annotations

import logging
import re

from .errors import PreparationError
from .fields import FieldMap, FieldResolver
from .models import PreparedItem, Record, record_id

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def find_variables(template: str) -> list[str]:
    """Variable names referenced by a template, trimmed, in order of first use."""
    seen: list[str] = []
    for match in VARIABLE_PATTERN.finditer(template):
        name = match.group(1).strip()
        if name not in seen:
            seen.append(name)
    return seen


def expand_template(
    template: str,
    field_map: FieldMap,
    record: Record,
    resolver: FieldResolver | None = None,
) -> str:
    """Replace every ``{{name}}`` with its resolved value.

    Pure and deterministic: a missing variable becomes an empty string.
    """
    resolver = resolver or FieldResolver()
    return VARIABLE_PATTERN.sub(lambda m: resolver.lookup(m.group(1), field_map, record), template)


class TemplateResolver:
    """Turns records into PreparedItems for one template."""

    def __init__(self, template: str, field_resolver: FieldResolver):
        self.template = template
        self.field_resolver = field_resolver

    def prepare(self, record: Record) -> PreparedItem:
        """Resolve fields and expand the template for one record.

        Never raises: an extraction failure yields an errored PreparedItem.
        """
        item_id = record_id(record)
        try:
            field_map = self.field_resolver.resolve(record)
            prompt = expand_template(self.template, field_map, record, self.field_resolver)
        except Exception as e:
            error = PreparationError(str(e) or "Error preparing item")
            logger.error(f"Error preparing item {item_id}: {error}")
            return PreparedItem(id=item_id, record=record, error=str(error))
        return PreparedItem(id=item_id, record=record, prompt=prompt)

    def prepare_all(self, records: tuple[Record, ...] | list[Record]) -> list[PreparedItem]:
        return [self.prepare(record) for record in records]
