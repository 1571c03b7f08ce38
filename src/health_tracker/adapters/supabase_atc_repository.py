"""Supabase implementation for the WHO ATC reference table."""

from dataclasses import dataclass

from supabase import Client

from health_tracker.adapters.supabase_support import parse_float, render_or_filter, rows
from health_tracker.domain.medications import AtcCode
from health_tracker.domain.queries import Predicate
from health_tracker.services.medications import AtcCodeRepository


@dataclass
class SupabaseAtcCodeRepository(AtcCodeRepository):
    """Supabase-backed repository for ATC codes and defined daily doses."""

    client: Client

    def find_by_name(self, name: str) -> AtcCode | None:
        """Return the code whose name equals the given name, ignoring case."""
        response = (
            self.client.table("atc_codes")
            .select("*")
            .ilike("name", name)
            .limit(1)
            .execute()
        )
        data = rows(response)
        if not data:
            return None
        return _parse_atc_code(data[0])

    def search_by_name(self, predicates: list[Predicate], limit: int) -> list[AtcCode]:
        """Return codes matching any of the predicates."""
        response = (
            self.client.table("atc_codes")
            .select("*")
            .or_(render_or_filter(predicates))
            .limit(limit)
            .execute()
        )
        return [_parse_atc_code(row) for row in rows(response)]

    def get_by_code(self, code: str) -> AtcCode | None:
        """Return a code by its ATC identifier."""
        response = (
            self.client.table("atc_codes")
            .select("*")
            .eq("code", code)
            .limit(1)
            .execute()
        )
        data = rows(response)
        if not data:
            return None
        return _parse_atc_code(data[0])


def _parse_atc_code(row: dict[str, object]) -> AtcCode:
    """Parse an atc_codes row into a domain model."""
    return AtcCode(
        code=str(row["code"]),
        name=str(row.get("name") or ""),
        category=row.get("category"),
        ddd=parse_float(row.get("ddd")),
        ddd_unit=row.get("ddd_unit"),
    )
