"""Grouping of logged events into meal sessions."""

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID

from health_tracker.domain.events import EventSession, PatternItem, VoiceEvent

PATTERN_EVENT_TYPES = ("food", "supplement", "medication")


class EventRepository(Protocol):
    """Read access to the user's logged event history."""

    def list_events(
        self, user_id: UUID, event_types: Sequence[str], since: datetime
    ) -> list[VoiceEvent]:
        """Return events of the given types since a moment, oldest first."""

    def has_template_event_since(
        self, user_id: UUID, template_id: UUID, since: datetime
    ) -> bool:
        """Return whether a template was logged since a moment."""


def group_events_into_sessions(
    events: Sequence[VoiceEvent] | None, window_minutes: int
) -> list[EventSession]:
    """Cluster time-sorted events; each gap is measured from the previous event.

    Sessions with fewer than two items are dropped.
    """
    if not events:
        return []
    window = timedelta(minutes=window_minutes)
    sessions: list[EventSession] = []
    first = events[0]
    items = [extract_item_from_event(first)]
    start_time = end_time = first.event_time
    for event in events[1:]:
        if event.event_time - end_time <= window:
            items.append(extract_item_from_event(event))
            end_time = event.event_time
            continue
        if len(items) >= 2:
            sessions.append(EventSession(items, start_time, end_time))
        items = [extract_item_from_event(event)]
        start_time = end_time = event.event_time
    if len(items) >= 2:
        sessions.append(EventSession(items, start_time, end_time))
    return sessions


def extract_item_from_event(event: VoiceEvent) -> PatternItem:
    """Map a logged event to the item identity used for fingerprints."""
    data = event.event_data or {}
    name = data.get("name") or data.get("description") or ""
    if event.event_type == "food":
        name = data.get("description") or name
    calories = data.get("calories")
    if not isinstance(calories, int | float) or isinstance(calories, bool):
        calories = None
    dosage = data.get("dosage")
    return PatternItem(
        product_id=str(event.product_catalog_id) if event.product_catalog_id else None,
        name=str(name),
        event_type=event.event_type,
        calories=float(calories) if calories else None,
        dosage=str(dosage) if dosage else None,
        units=data.get("units") or None,
    )
