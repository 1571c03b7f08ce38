"""Supabase implementation for reading logged events."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from health_tracker.adapters.supabase_support import parse_datetime, parse_uuid, rows
from health_tracker.domain.events import VoiceEvent
from health_tracker.services.sessions import EventRepository

_EVENT_COLUMNS = (
    "id, user_id, event_type, event_data, event_time, product_catalog_id, template_id"
)


@dataclass
class SupabaseEventRepository(EventRepository):
    """Supabase-backed read access to the voice_events history."""

    client: Client

    def list_events(
        self, user_id: UUID, event_types: Sequence[str], since: datetime
    ) -> list[VoiceEvent]:
        """Return events of the given types since a moment, oldest first."""
        response = (
            self.client.table("voice_events")
            .select(_EVENT_COLUMNS)
            .eq("user_id", str(user_id))
            .gte("event_time", since.isoformat())
            .in_("event_type", list(event_types))
            .order("event_time")
            .execute()
        )
        return [_parse_event(row) for row in rows(response)]

    def has_template_event_since(
        self, user_id: UUID, template_id: UUID, since: datetime
    ) -> bool:
        """Return whether a template was logged since a moment."""
        response = (
            self.client.table("voice_events")
            .select("id")
            .eq("user_id", str(user_id))
            .eq("template_id", str(template_id))
            .gte("event_time", since.isoformat())
            .limit(1)
            .execute()
        )
        return bool(rows(response))


def _parse_event(row: dict[str, object]) -> VoiceEvent:
    """Parse a voice_events row into a domain model."""
    event_time = parse_datetime(row.get("event_time"))
    if event_time is None:
        raise ValueError(f"Event {row.get('id')} has no event_time")
    event_data = row.get("event_data")
    return VoiceEvent(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        event_type=str(row.get("event_type") or ""),
        event_time=event_time,
        event_data=event_data if isinstance(event_data, dict) else {},
        product_catalog_id=parse_uuid(row.get("product_catalog_id")),
        template_id=parse_uuid(row.get("template_id")),
    )
