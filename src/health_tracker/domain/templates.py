"""Domain models for meal templates and detected patterns."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from health_tracker.domain.events import PatternItem

TEMPLATE_MATCH = "template"
PATTERN_MATCH = "pattern"


@dataclass(frozen=True)
class MealTemplate:
    """Named reusable bundle of items the user logs together."""

    id: UUID
    user_id: UUID
    template_name: str
    template_key: str
    fingerprint: str
    items: list[PatternItem] = field(default_factory=list)
    typical_time_range: str | None = None
    times_logged: int = 0
    auto_generated: bool = False
    last_logged_at: datetime | None = None


@dataclass(frozen=True)
class MealPattern:
    """Item set that recurred often enough to suggest a template."""

    fingerprint: str
    items: list[PatternItem]
    occurrences: int
    typical_hour: int | None


@dataclass(frozen=True)
class TemplateMatch:
    """Outcome of matching a spoken phrase to a template."""

    matched: bool
    template: MealTemplate | None = None
    confidence: float = 0.0


@dataclass(frozen=True)
class PatternMatch:
    """Outcome of comparing pending items against templates and patterns."""

    kind: str | None
    similarity: float = 0.0
    template: MealTemplate | None = None
    pattern: MealPattern | None = None
