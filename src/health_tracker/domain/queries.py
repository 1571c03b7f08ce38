"""Structured query predicates passed to repositories."""

from collections.abc import Iterable
from dataclasses import dataclass

ILIKE = "ilike"
EQ = "eq"


@dataclass(frozen=True)
class Predicate:
    """Single column predicate; adapters render it, never the raw user text."""

    field: str
    operator: str
    value: object

    def matches(self, candidate: object) -> bool:
        """Evaluate the predicate against a column value in memory."""
        if self.operator == EQ:
            return candidate == self.value
        if self.operator == ILIKE:
            if candidate is None:
                return False
            needle = str(self.value).strip("%").lower()
            return needle in str(candidate).lower()
        raise ValueError(f"Unsupported operator: {self.operator}")


def contains_any(fields: Iterable[str], terms: Iterable[str]) -> list[Predicate]:
    """Build OR-able case-insensitive containment predicates for every field/term."""
    field_list = list(fields)
    return [
        Predicate(field=field_name, operator=ILIKE, value=f"%{term}%")
        for term in terms
        for field_name in field_list
    ]
