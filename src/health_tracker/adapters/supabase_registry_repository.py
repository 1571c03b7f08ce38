"""Supabase implementation for the user product registry."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from health_tracker.adapters.supabase_support import parse_datetime, rows
from health_tracker.domain.registry import ClassificationCorrection, RegistryEntry
from health_tracker.services.registry import RegistryRepository


@dataclass
class SupabaseRegistryRepository(RegistryRepository):
    """Supabase-backed repository for per-user registry entries."""

    client: Client

    def get_entry(self, user_id: UUID, product_key: str) -> RegistryEntry | None:
        """Return a user's entry for an exact product key."""
        response = (
            self.client.table("user_product_registry")
            .select("*")
            .eq("user_id", str(user_id))
            .eq("product_key", product_key)
            .limit(1)
            .execute()
        )
        data = rows(response)
        if not data:
            return None
        return _parse_entry(data[0])

    def list_frequent_entries(
        self, user_id: UUID, min_times_logged: int, limit: int
    ) -> list[RegistryEntry]:
        """Return a user's most logged entries above a usage floor."""
        response = (
            self.client.table("user_product_registry")
            .select("*")
            .eq("user_id", str(user_id))
            .gte("times_logged", min_times_logged)
            .order("times_logged", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_entry(row) for row in rows(response)]

    def create_entry(self, user_id: UUID, payload: dict[str, object]) -> None:
        """Insert a registry entry."""
        self.client.table("user_product_registry").insert(
            {"user_id": str(user_id), **payload}
        ).execute()

    def update_entry(self, entry_id: UUID, payload: dict[str, object]) -> None:
        """Update a registry entry."""
        self.client.table("user_product_registry").update(payload).eq(
            "id", str(entry_id)
        ).execute()

    def find_correction(
        self, user_id: UUID, user_input: str
    ) -> ClassificationCorrection | None:
        """Return the latest correction whose input contains the given text."""
        response = (
            self.client.table("classification_corrections")
            .select("corrected_event_type, selected_product_name")
            .eq("user_id", str(user_id))
            .ilike("user_input", f"%{user_input}%")
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        data = rows(response)
        if not data:
            return None
        return ClassificationCorrection(
            corrected_event_type=str(data[0]["corrected_event_type"]),
            selected_product_name=data[0].get("selected_product_name"),
        )


def _parse_entry(row: dict[str, object]) -> RegistryEntry:
    """Parse a registry row into a domain model."""
    return RegistryEntry(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        product_key=str(row.get("product_key") or ""),
        event_type=str(row.get("event_type") or ""),
        product_name=str(row.get("product_name") or ""),
        brand=row.get("brand"),
        times_logged=int(row.get("times_logged") or 0),
        last_logged_at=parse_datetime(row.get("last_logged_at")),
    )
