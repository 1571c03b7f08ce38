"""Tests for meal template matching and lifecycle."""

from datetime import UTC, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from health_tracker.domain.errors import InvalidInputError, UnauthenticatedError
from health_tracker.domain.events import PatternItem, VoiceEvent
from health_tracker.domain.templates import MealPattern
from health_tracker.services.templates import (
    TemplateService,
    extract_template_phrases,
    score_template,
)
from tests.conftest import (
    InMemoryEventRepository,
    InMemoryTemplateRepository,
    StorageError,
    make_template,
)


def _service(
    templates: InMemoryTemplateRepository | None = None,
    events: InMemoryEventRepository | None = None,
) -> TemplateService:
    return TemplateService(
        templates or InMemoryTemplateRepository(), events or InMemoryEventRepository()
    )


def test_extract_template_phrases_strips_triggers_and_suffixes() -> None:
    assert extract_template_phrases("Log my usual morning stack") == [
        "morning",
        "morning stack",
    ]
    assert extract_template_phrases("took my morning vitamins") == [
        "morning",
        "morning vitamins",
    ]
    assert extract_template_phrases("the usual breakfast") == ["breakfast"]
    assert extract_template_phrases("my stack") == ["stack"]
    assert extract_template_phrases("") == []
    assert extract_template_phrases("my") == []


def test_extract_template_phrases_ignores_trailing_punctuation() -> None:
    assert extract_template_phrases("Log my morning stack.") == [
        "morning",
        "morning stack",
    ]
    assert extract_template_phrases("Took my usual post-workout shake!") == [
        "post workout shake"
    ]


def test_score_template_levels() -> None:
    template = make_template(
        uuid4(), template_name="Morning Vitamins", template_key="morning vitamins"
    )

    assert score_template("morning vitamins", template) == 1.0
    assert score_template("morning", template) == 0.9
    assert score_template("my morning vitamins today", template) == 0.85
    assert score_template("morningvitamins", template) == 0.75
    assert score_template("evening vitamin", template) == pytest.approx(0.65)
    assert score_template("protein shake", template) == 0.0


def test_match_template_by_voice() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    morning = templates.add(make_template(user_id))
    templates.add(
        make_template(
            user_id, template_name="Evening Stack", template_key="evening stack"
        )
    )

    result = _service(templates).match_template_by_voice(
        "log my morning vitamins", user_id
    )

    assert result.matched
    assert result.template == morning
    assert result.confidence == 1.0


def test_exact_name_with_generic_suffix_still_wins() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    templates.add(make_template(user_id))
    stack = templates.add(
        make_template(
            user_id, template_name="Morning Stack", template_key="morning stack"
        )
    )

    result = _service(templates).match_template_by_voice("my morning stack", user_id)

    assert result.matched
    assert result.template == stack


def test_match_template_by_voice_below_threshold() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    templates.add(make_template(user_id))

    result = _service(templates).match_template_by_voice("log protein shake", user_id)

    assert not result.matched
    assert result.template is None
    assert not _service(templates).match_template_by_voice("morning", None).matched


def test_create_template_from_pattern() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    pattern = MealPattern(
        fingerprint="a|b",
        items=[
            PatternItem(product_id="a", name="Vitamin D", event_type="supplement"),
            PatternItem(product_id="b", name="Magnesium", event_type="supplement"),
        ],
        occurrences=4,
        typical_hour=0,
    )

    template = _service(templates).create_template_from_pattern(
        user_id, pattern, "  Night Stack "
    )

    assert template.template_name == "Night Stack"
    assert template.template_key == "night stack"
    assert template.typical_time_range == "00:00-01:59"
    assert template.auto_generated
    assert [item.name for item in template.items] == ["Vitamin D", "Magnesium"]


def test_create_template_defaults_to_midday_without_hour() -> None:
    pattern = MealPattern(fingerprint="a|b", items=[], occurrences=2, typical_hour=None)

    template = _service().create_template_from_pattern(uuid4(), pattern, "Lunch")

    assert template.typical_time_range == "11:00-13:59"


def test_create_template_validates_input() -> None:
    pattern = MealPattern(fingerprint="a|b", items=[], occurrences=2, typical_hour=23)
    service = _service()

    with pytest.raises(UnauthenticatedError):
        service.create_template_from_pattern(None, pattern, "Late")
    with pytest.raises(InvalidInputError):
        service.create_template_from_pattern(uuid4(), pattern, "  ")
    with pytest.raises(InvalidInputError):
        service.create_template_from_pattern(uuid4(), None, "Late")


def test_get_suggested_template_skips_templates_logged_today() -> None:
    user_id = uuid4()
    hour = datetime.now(tz=ZoneInfo("UTC")).hour
    templates = InMemoryTemplateRepository()
    template = templates.add(
        make_template(user_id, typical_time_range=f"{hour:02d}:00-{hour:02d}:59")
    )
    events = InMemoryEventRepository()
    service = _service(templates, events)

    assert service.get_suggested_template(user_id) == template

    events.events.append(
        VoiceEvent(
            id=uuid4(),
            user_id=user_id,
            event_type="supplement",
            event_time=datetime.now(tz=UTC),
            template_id=template.id,
        )
    )
    assert service.get_suggested_template(user_id) is None


def test_get_suggested_template_requires_time_range() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    templates.add(make_template(user_id, typical_time_range=None))

    assert _service(templates).get_suggested_template(user_id) is None


def test_get_suggested_template_with_unknown_timezone() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    templates.add(make_template(user_id, typical_time_range="00:00-23:59"))
    service = _service(templates)

    assert service.get_suggested_template(user_id) is not None
    assert service.get_suggested_template(user_id, timezone_name="Not/AZone") is None


def test_increment_template_usage() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    template = templates.add(make_template(user_id, times_logged=3))
    service = _service(templates)

    assert service.increment_template_usage(template.id)
    assert templates.templates[template.id].times_logged == 4
    assert not service.increment_template_usage(uuid4())
    assert not service.increment_template_usage(None)


def test_learn_template_quantities_blends_history() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    template = templates.add(
        make_template(
            user_id,
            items=[
                PatternItem(
                    product_id="a",
                    name="Magnesium",
                    event_type="supplement",
                    default_quantity=2,
                ),
                PatternItem(product_id="b", name="Vitamin D", event_type="supplement"),
            ],
        )
    )

    assert _service(templates).learn_template_quantities(template.id, {0: 3, 1: 2})

    items = templates.templates[template.id].items
    assert items[0].default_quantity == 2.3
    assert items[1].default_quantity == 1.3


def test_learn_template_quantities_reports_failures() -> None:
    templates = InMemoryTemplateRepository(fail_with=StorageError("timeout"))

    assert not _service(templates).learn_template_quantities(uuid4(), {0: 1})
    assert not _service().learn_template_quantities(uuid4(), {})


def test_delete_template_is_scoped_to_owner() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    template = templates.add(make_template(user_id))
    service = _service(templates)

    assert service.delete_template(template.id, uuid4())
    assert template.id in templates.templates
    assert service.delete_template(template.id, user_id)
    assert template.id not in templates.templates
    assert not service.delete_template(None, user_id)


def test_get_user_templates_orders_by_usage() -> None:
    user_id = uuid4()
    templates = InMemoryTemplateRepository()
    rare = templates.add(make_template(user_id, times_logged=1))
    frequent = templates.add(make_template(user_id, times_logged=9))

    assert _service(templates).get_user_templates(user_id) == [frequent, rare]
    assert _service(templates).get_user_templates(None) == []
