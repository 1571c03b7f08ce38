"""Supabase implementation for user meal templates."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from health_tracker.adapters.supabase_support import parse_datetime, rows
from health_tracker.domain.events import pattern_item_from_payload
from health_tracker.domain.templates import MealTemplate
from health_tracker.services.templates import TemplateRepository


@dataclass
class SupabaseTemplateRepository(TemplateRepository):
    """Supabase-backed repository for meal templates."""

    client: Client

    def list_templates(self, user_id: UUID) -> list[MealTemplate]:
        """Return a user's templates, most used first."""
        response = (
            self.client.table("user_meal_templates")
            .select("*")
            .eq("user_id", str(user_id))
            .order("times_logged", desc=True)
            .execute()
        )
        return [_parse_template(row) for row in rows(response)]

    def get_template(self, template_id: UUID) -> MealTemplate | None:
        """Return a template by id, if present."""
        response = (
            self.client.table("user_meal_templates")
            .select("*")
            .eq("id", str(template_id))
            .limit(1)
            .execute()
        )
        data = rows(response)
        if not data:
            return None
        return _parse_template(data[0])

    def create_template(
        self, user_id: UUID, payload: dict[str, object]
    ) -> MealTemplate:
        """Insert a template and return it."""
        response = (
            self.client.table("user_meal_templates")
            .insert({"user_id": str(user_id), **payload})
            .execute()
        )
        data = rows(response)
        if not data:
            raise RuntimeError("Failed to create meal template")
        return _parse_template(data[0])

    def update_template(self, template_id: UUID, payload: dict[str, object]) -> None:
        """Update a template."""
        self.client.table("user_meal_templates").update(payload).eq(
            "id", str(template_id)
        ).execute()

    def delete_template(self, template_id: UUID, user_id: UUID) -> None:
        """Delete a user's template."""
        self.client.table("user_meal_templates").delete().eq(
            "id", str(template_id)
        ).eq("user_id", str(user_id)).execute()


def _parse_template(row: dict[str, object]) -> MealTemplate:
    """Parse a user_meal_templates row into a domain model."""
    items = row.get("items") or []
    return MealTemplate(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        template_name=str(row.get("template_name") or ""),
        template_key=str(row.get("template_key") or ""),
        fingerprint=str(row.get("fingerprint") or ""),
        items=[pattern_item_from_payload(item) for item in items if isinstance(item, dict)],
        typical_time_range=row.get("typical_time_range"),
        times_logged=int(row.get("times_logged") or 0),
        auto_generated=bool(row.get("auto_generated")),
        last_logged_at=parse_datetime(row.get("last_logged_at")),
    )
