"""Detection of recurring meal patterns from event history."""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from health_tracker.domain.events import PatternItem
from health_tracker.domain.templates import (
    PATTERN_MATCH,
    TEMPLATE_MATCH,
    MealPattern,
    PatternMatch,
)
from health_tracker.services.fingerprints import (
    calculate_pattern_similarity,
    generate_meal_fingerprint,
)
from health_tracker.services.sessions import (
    PATTERN_EVENT_TYPES,
    EventRepository,
    group_events_into_sessions,
)
from health_tracker.services.templates import TemplateRepository

_logger = logging.getLogger(__name__)


@dataclass
class _FingerprintTally:
    items: list[PatternItem]
    count: int = 0
    hours: list[int] = field(default_factory=list)


@dataclass
class PatternService:
    """Finds item sets a user logs together repeatedly."""

    event_repository: EventRepository
    template_repository: TemplateRepository
    similarity_threshold: float = 0.7
    time_window_minutes: int = 30
    min_occurrences: int = 2
    lookback_days: int = 30

    def detect_meal_patterns(
        self,
        user_id: UUID | None,
        time_window_minutes: int | None = None,
        min_occurrences: int | None = None,
        lookback_days: int | None = None,
        timezone_name: str = "UTC",
    ) -> list[MealPattern]:
        """Return recurring item sets not yet saved as templates, most frequent first."""
        if user_id is None:
            return []
        window = _default(time_window_minutes, self.time_window_minutes)
        minimum = _default(min_occurrences, self.min_occurrences)
        days = _default(lookback_days, self.lookback_days)
        since = datetime.now(tz=UTC) - timedelta(days=days)
        try:
            tz = ZoneInfo(timezone_name)
            events = self.event_repository.list_events(
                user_id, PATTERN_EVENT_TYPES, since
            )
            if not events:
                return []
            tallies: dict[str, _FingerprintTally] = {}
            for session in group_events_into_sessions(events, window):
                fingerprint = generate_meal_fingerprint(session.items)
                if not fingerprint:
                    continue
                tally = tallies.setdefault(fingerprint, _FingerprintTally(session.items))
                tally.count += 1
                tally.hours.append(session.start_time.astimezone(tz).hour)
            patterns = [
                MealPattern(
                    fingerprint=fingerprint,
                    items=tally.items,
                    occurrences=tally.count,
                    typical_hour=_round_half_up(sum(tally.hours) / tally.count),
                )
                for fingerprint, tally in tallies.items()
                if tally.count >= minimum
            ]
            patterns.sort(key=lambda pattern: pattern.occurrences, reverse=True)
            if not patterns:
                return []
            existing = {
                template.fingerprint
                for template in self.template_repository.list_templates(user_id)
            }
        except Exception:
            _logger.exception("Pattern detection failed")
            return []
        return [pattern for pattern in patterns if pattern.fingerprint not in existing]

    def check_for_pattern_match(
        self,
        user_id: UUID | None,
        current_items: Sequence[PatternItem] | None,
        timezone_name: str = "UTC",
    ) -> PatternMatch:
        """Compare pending items to templates, then to emerging patterns."""
        no_match = PatternMatch(kind=None)
        if user_id is None or not current_items:
            return no_match
        fingerprint = generate_meal_fingerprint(current_items)
        if not fingerprint:
            return no_match
        try:
            templates = self.template_repository.list_templates(user_id)
        except Exception:
            _logger.exception("Template lookup failed for pattern match")
            templates = []
        for template in templates:
            similarity = calculate_pattern_similarity(fingerprint, template.fingerprint)
            if similarity >= self.similarity_threshold:
                return PatternMatch(
                    kind=TEMPLATE_MATCH, similarity=similarity, template=template
                )
        for pattern in self.detect_meal_patterns(user_id, timezone_name=timezone_name):
            similarity = calculate_pattern_similarity(fingerprint, pattern.fingerprint)
            if similarity >= self.similarity_threshold:
                return PatternMatch(
                    kind=PATTERN_MATCH, similarity=similarity, pattern=pattern
                )
        return no_match


def _default(value: int | None, fallback: int) -> int:
    return fallback if value is None else value


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
