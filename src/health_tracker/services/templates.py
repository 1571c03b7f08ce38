"""Meal templates: voice matching, suggestions, and lifecycle."""

import logging
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from health_tracker.domain.errors import (
    InvalidInputError,
    StorageWriteError,
    UnauthenticatedError,
)
from health_tracker.domain.templates import MealPattern, MealTemplate, TemplateMatch
from health_tracker.services.normalization import normalize_key
from health_tracker.services.sessions import EventRepository

_TRIGGERS = (
    re.compile(r"^log\s+(?:my |the )?(?:usual |regular |normal )?(.+)$"),
    re.compile(r"^(?:took|had|ate|take)\s+(?:my |the )?(?:usual |regular |normal )?(.+)$"),
    re.compile(r"^(?:my |the )(?:usual |regular |normal )?(.+)$"),
    re.compile(r"^(.+)$"),
)
_GENERIC_SUFFIX = re.compile(r"\s+(?:routine|stack|combo|meal|supplements?|vitamins?)$")
_STOPWORDS = frozenset({"my", "the", "a", "an", "usual", "regular", "normal"})
_DEFAULT_HOUR = 12
_HISTORY_WEIGHT = Decimal("0.7")
_NEW_WEIGHT = Decimal("0.3")

_logger = logging.getLogger(__name__)


class TemplateRepository(Protocol):
    """Persistence interface for user meal templates."""

    def list_templates(self, user_id: UUID) -> list[MealTemplate]:
        """Return a user's templates, most used first."""

    def get_template(self, template_id: UUID) -> MealTemplate | None:
        """Return a template by id, if present."""

    def create_template(
        self, user_id: UUID, payload: dict[str, object]
    ) -> MealTemplate:
        """Insert a template and return it."""

    def update_template(self, template_id: UUID, payload: dict[str, object]) -> None:
        """Update a template."""

    def delete_template(self, template_id: UUID, user_id: UUID) -> None:
        """Delete a user's template."""


def extract_template_phrases(transcription: str | None) -> list[str]:
    """Return candidate template phrases, suffix-stripped form first.

    Triggers are tried in order ("log ...", "took/had/ate/take ...",
    "my/the ...", then the raw phrase). A trailing generic word such as
    "stack" or "vitamins" is dropped only when the remainder is still a
    meaningful phrase; the full captured phrase is kept as a second
    candidate so exact template names still win.
    """
    normalized = normalize_key(transcription)
    if not normalized:
        return []
    for trigger in _TRIGGERS:
        match = trigger.match(normalized)
        if not match:
            continue
        captured = match.group(1).strip()
        stripped = _GENERIC_SUFFIX.sub("", captured).strip()
        if _is_meaningful(stripped):
            return list(dict.fromkeys([stripped, captured]))
        if _is_meaningful(captured):
            return [captured]
    return []


def score_template(search_key: str, template: MealTemplate) -> float:
    """Score how well a normalized phrase names a template."""
    template_key = template.template_key.lower()
    template_name = template.template_name.lower()
    if not search_key or not template_key:
        return 0.0
    if template_key == search_key:
        return 1.0
    if search_key in template_key:
        return 0.9
    if template_key in search_key:
        return 0.85
    if search_key in template_name:
        return 0.8
    if template_name.replace(" ", "") in search_key:
        return 0.75
    search_words = search_key.split()
    template_words = template_key.split()
    matched = [
        word
        for word in search_words
        if any(other in word or word in other for other in template_words)
    ]
    if not matched:
        return 0.0
    return 0.5 + len(matched) / max(len(search_words), len(template_words)) * 0.3


@dataclass
class TemplateService:
    """Service for recognizing and maintaining meal templates."""

    repository: TemplateRepository
    event_repository: EventRepository
    match_threshold: float = 0.7

    def match_template_by_voice(
        self, transcription: str | None, user_id: UUID | None
    ) -> TemplateMatch:
        """Resolve a spoken phrase such as "my morning vitamins" to a template."""
        if user_id is None:
            return TemplateMatch(matched=False)
        phrases = [normalize_key(phrase) for phrase in extract_template_phrases(transcription)]
        phrases = [phrase for phrase in phrases if phrase]
        if not phrases:
            return TemplateMatch(matched=False)
        try:
            templates = self.repository.list_templates(user_id)
        except Exception:
            _logger.exception("Template lookup failed for voice match")
            return TemplateMatch(matched=False)
        best: MealTemplate | None = None
        best_score = 0.0
        for template in templates:
            score = max(score_template(phrase, template) for phrase in phrases)
            if score > best_score:
                best, best_score = template, score
        if best is not None and best_score >= self.match_threshold:
            return TemplateMatch(matched=True, template=best, confidence=best_score)
        return TemplateMatch(matched=False, confidence=best_score)

    def create_template_from_pattern(
        self,
        user_id: UUID | None,
        pattern: MealPattern | None,
        template_name: str | None,
    ) -> MealTemplate:
        """Promote a confirmed pattern to a named template."""
        if user_id is None:
            raise UnauthenticatedError
        if pattern is None or not template_name or not template_name.strip():
            raise InvalidInputError("pattern and template_name are required")
        hour = pattern.typical_hour if pattern.typical_hour is not None else _DEFAULT_HOUR
        start_hour = max(0, hour - 1)
        end_hour = min(23, hour + 1)
        payload: dict[str, object] = {
            "template_name": template_name.strip(),
            "template_key": normalize_key(template_name),
            "fingerprint": pattern.fingerprint,
            "items": [asdict(item) for item in pattern.items],
            "typical_time_range": f"{start_hour:02d}:00-{end_hour:02d}:59",
            "times_logged": 0,
            "first_logged_at": datetime.now(tz=UTC).isoformat(),
            "auto_generated": True,
        }
        try:
            template = self.repository.create_template(user_id, payload)
        except Exception as exc:
            _logger.exception("Template insert failed: name=%s", template_name)
            raise StorageWriteError(f"Failed to create template {template_name}") from exc
        _logger.info(
            "Template created: name=%s items=%s", template.template_name, len(pattern.items)
        )
        return template

    def get_user_templates(self, user_id: UUID | None) -> list[MealTemplate]:
        """Return the user's templates, most used first."""
        if user_id is None:
            return []
        try:
            return self.repository.list_templates(user_id)
        except Exception:
            _logger.exception("Template listing failed")
            return []

    def get_suggested_template(
        self, user_id: UUID | None, timezone_name: str = "UTC"
    ) -> MealTemplate | None:
        """Return a template due at this hour that was not logged today."""
        if user_id is None:
            return None
        try:
            now = datetime.now(tz=ZoneInfo(timezone_name))
            current = f"{now.hour:02d}:00"
            templates = self.repository.list_templates(user_id)
            due = [
                template
                for template in templates
                if _in_time_range(current, template.typical_time_range)
            ]
            if not due:
                return None
            template = due[0]
            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
            if self.event_repository.has_template_event_since(
                user_id, template.id, start_of_day.astimezone(UTC)
            ):
                return None
        except Exception:
            _logger.exception("Template suggestion failed")
            return None
        return template

    def increment_template_usage(self, template_id: UUID | None) -> bool:
        """Best-effort bump of a template's usage counter."""
        if template_id is None:
            return False
        try:
            template = self.repository.get_template(template_id)
            if template is None:
                return False
            self.repository.update_template(
                template_id,
                {
                    "times_logged": template.times_logged + 1,
                    "last_logged_at": datetime.now(tz=UTC).isoformat(),
                },
            )
        except Exception as exc:
            _logger.warning("Template usage increment failed: %s", exc)
            return False
        return True

    def learn_template_quantities(
        self, template_id: UUID | None, new_quantities: Mapping[int, float] | None
    ) -> bool:
        """Blend newly chosen quantities into the template defaults (70/30)."""
        if template_id is None or not new_quantities:
            return False
        try:
            template = self.repository.get_template(template_id)
            if template is None or not template.items:
                return False
            items = []
            for index, item in enumerate(template.items):
                old = item.default_quantity or 1
                new = new_quantities.get(index, old)
                learned = (
                    Decimal(str(old)) * _HISTORY_WEIGHT + Decimal(str(new)) * _NEW_WEIGHT
                ).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
                items.append(replace(item, default_quantity=float(learned)))
            self.repository.update_template(
                template_id, {"items": [asdict(item) for item in items]}
            )
        except Exception as exc:
            _logger.warning("Template quantity learning failed: %s", exc)
            return False
        return True

    def delete_template(self, template_id: UUID | None, user_id: UUID | None) -> bool:
        """Delete one of the user's templates."""
        if template_id is None or user_id is None:
            return False
        try:
            self.repository.delete_template(template_id, user_id)
        except Exception:
            _logger.exception("Template delete failed: template_id=%s", template_id)
            return False
        return True


def _is_meaningful(phrase: str) -> bool:
    return len(phrase) > 2 and phrase not in _STOPWORDS


def _in_time_range(current: str, time_range: str | None) -> bool:
    if not time_range or "-" not in time_range:
        return False
    start, end = time_range.split("-", 1)
    return start <= current <= end
