"""Domain models for logged events and meal sessions."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class VoiceEvent:
    """Historical log entry produced from voice, text or photo input."""

    id: UUID
    user_id: UUID
    event_type: str
    event_time: datetime
    event_data: dict[str, object] = field(default_factory=dict)
    product_catalog_id: UUID | None = None
    template_id: UUID | None = None


@dataclass(frozen=True)
class PatternItem:
    """Normalized view of one logged item used for pattern learning."""

    product_id: str | None
    name: str
    event_type: str
    calories: float | None = None
    dosage: str | None = None
    units: str | None = None
    default_quantity: float | None = None


def pattern_item_from_payload(data: dict[str, object]) -> PatternItem:
    """Rebuild a pattern item from its stored JSON form."""
    product_id = data.get("product_id")
    default_quantity = data.get("default_quantity")
    calories = data.get("calories")
    return PatternItem(
        product_id=str(product_id) if product_id else None,
        name=str(data.get("name") or ""),
        event_type=str(data.get("event_type") or ""),
        calories=float(calories) if calories is not None else None,
        dosage=str(data["dosage"]) if data.get("dosage") is not None else None,
        units=data.get("units"),
        default_quantity=(
            float(default_quantity) if default_quantity is not None else None
        ),
    )


@dataclass(frozen=True)
class EventSession:
    """Events logged close together in time, treated as one meal."""

    items: list[PatternItem]
    start_time: datetime
    end_time: datetime
