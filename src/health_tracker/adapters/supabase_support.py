"""Shared helpers for Supabase row handling and filter rendering."""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from health_tracker.domain.queries import Predicate

_RESERVED = frozenset(',()":\\')


def rows(response: object) -> list[dict[str, object]]:
    """Return response rows, treating a missing response or payload as empty."""
    if response is None:
        return []
    return getattr(response, "data", None) or []


def render_or_filter(predicates: Iterable[Predicate]) -> str:
    """Render predicates as a PostgREST `or` filter body."""
    return ",".join(
        f"{predicate.field}.{predicate.operator}.{_quote(predicate.value)}"
        for predicate in predicates
    )


def parse_datetime(raw: object) -> datetime | None:
    """Parse an ISO timestamp column."""
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None


def parse_uuid(raw: object) -> UUID | None:
    """Parse an optional UUID column."""
    if raw is None or raw == "":
        return None
    return UUID(str(raw))


def parse_float(raw: object) -> float | None:
    """Parse an optional numeric column."""
    if raw is None or raw == "":
        return None
    return float(raw)


def _quote(value: object) -> str:
    """Double-quote values containing characters PostgREST treats as syntax."""
    text = str(value)
    if not any(char in _RESERVED or char.isspace() for char in text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
