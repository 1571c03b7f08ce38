"""Domain models for the per-user product registry."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

SOURCE_EXACT = "user_registry_exact"
SOURCE_FUZZY = "user_registry_fuzzy"
SOURCE_PHONETIC = "user_registry_phonetic"
SOURCE_CORRECTION = "user_correction"


@dataclass(frozen=True)
class RegistryEntry:
    """A user's learned product/event-type association."""

    id: UUID
    user_id: UUID
    product_key: str
    event_type: str
    product_name: str
    brand: str | None
    times_logged: int
    last_logged_at: datetime | None = None


@dataclass(frozen=True)
class RegistryMatch:
    """Result of resolving free text against a user's history."""

    event_type: str
    product_name: str
    brand: str | None
    times_logged: int
    source: str


@dataclass(frozen=True)
class ClassificationCorrection:
    """A user's manual fix of a misclassified event type."""

    corrected_event_type: str
    selected_product_name: str | None
