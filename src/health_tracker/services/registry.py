"""Per-user product registry: instant recognition of previously logged items."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from health_tracker.domain.errors import (
    InvalidInputError,
    StorageWriteError,
    UnauthenticatedError,
)
from health_tracker.domain.registry import (
    SOURCE_CORRECTION,
    SOURCE_EXACT,
    SOURCE_FUZZY,
    SOURCE_PHONETIC,
    ClassificationCorrection,
    RegistryEntry,
    RegistryMatch,
)
from health_tracker.services.normalization import consonant_skeleton, normalize_key
from health_tracker.services.outcomes import is_missing_table, is_not_found

_MIN_SKELETON_LENGTH = 3

_logger = logging.getLogger(__name__)


class RegistryRepository(Protocol):
    """Persistence interface for the user product registry."""

    def get_entry(self, user_id: UUID, product_key: str) -> RegistryEntry | None:
        """Return a user's entry for an exact product key."""

    def list_frequent_entries(
        self, user_id: UUID, min_times_logged: int, limit: int
    ) -> list[RegistryEntry]:
        """Return a user's most logged entries above a usage floor."""

    def create_entry(self, user_id: UUID, payload: dict[str, object]) -> None:
        """Insert a registry entry."""

    def update_entry(self, entry_id: UUID, payload: dict[str, object]) -> None:
        """Update a registry entry."""

    def find_correction(
        self, user_id: UUID, user_input: str
    ) -> ClassificationCorrection | None:
        """Return the latest correction whose input contains the given text."""


@dataclass
class RegistryService:
    """Matches transcriptions against what a user has logged before."""

    repository: RegistryRepository
    fuzzy_min_times_logged: int = 3
    fuzzy_limit: int = 50

    def check_user_product_registry(
        self, transcription: str | None, user_id: UUID | None
    ) -> RegistryMatch | None:
        """Exact lookup of the normalized transcription in the user's registry."""
        if not transcription or user_id is None:
            return None
        product_key = normalize_key(transcription)
        if not product_key:
            return None
        try:
            entry = self.repository.get_entry(user_id, product_key)
        except Exception as exc:
            if not is_not_found(exc):
                _logger.exception("Registry lookup failed: key=%s", product_key)
            return None
        if entry is None:
            return None
        return _to_match(entry, SOURCE_EXACT)

    def fuzzy_match_user_products(
        self, transcription: str | None, user_id: UUID | None
    ) -> RegistryMatch | None:
        """Approximate lookup among the user's frequently logged products."""
        if not transcription or user_id is None:
            return None
        product_key = normalize_key(transcription)
        if not product_key:
            return None
        try:
            entries = self.repository.list_frequent_entries(
                user_id, self.fuzzy_min_times_logged, self.fuzzy_limit
            )
        except Exception as exc:
            if not is_not_found(exc):
                _logger.exception("Registry fuzzy lookup failed: key=%s", product_key)
            return None
        for entry in entries or []:
            if entry.product_key and (
                entry.product_key in product_key or product_key in entry.product_key
            ):
                return _to_match(entry, SOURCE_FUZZY)
        skeleton = consonant_skeleton(product_key)
        if len(skeleton) < _MIN_SKELETON_LENGTH:
            return None
        for entry in entries or []:
            candidate = consonant_skeleton(entry.product_key)
            if len(candidate) >= _MIN_SKELETON_LENGTH and (
                candidate in skeleton or skeleton in candidate
            ):
                return _to_match(entry, SOURCE_PHONETIC)
        return None

    def resolve(
        self, transcription: str | None, user_id: UUID | None
    ) -> RegistryMatch | None:
        """Try the exact registry lookup, then the fuzzy fallback."""
        return self.check_user_product_registry(
            transcription, user_id
        ) or self.fuzzy_match_user_products(transcription, user_id)

    def update_user_product_registry(  # noqa: PLR0913
        self,
        user_id: UUID | None,
        event_type: str | None,
        product_name: str | None,
        brand: str | None = None,
        external_product_id: str | None = None,
        external_source: str | None = None,
    ) -> None:
        """Create the user's entry for a product or bump its usage."""
        if user_id is None:
            raise UnauthenticatedError
        if not event_type or not product_name:
            raise InvalidInputError("event_type and product_name are required")
        product_key = normalize_key(product_name)
        now = datetime.now(tz=UTC).isoformat()
        try:
            existing = self._existing_entry(user_id, product_key)
            if existing is not None:
                payload: dict[str, object] = {
                    "times_logged": existing.times_logged + 1,
                    "last_logged_at": now,
                }
                if brand:
                    payload["brand"] = brand
                if external_product_id:
                    payload["external_product_id"] = external_product_id
                if external_source:
                    payload["external_source"] = external_source
                self.repository.update_entry(existing.id, payload)
                _logger.info(
                    "Registry updated: key=%s times_logged=%s",
                    product_key,
                    existing.times_logged + 1,
                )
                return
            self.repository.create_entry(
                user_id,
                {
                    "product_key": product_key,
                    "event_type": event_type,
                    "product_name": product_name,
                    "brand": brand,
                    "external_product_id": external_product_id,
                    "external_source": external_source,
                    "times_logged": 1,
                    "last_logged_at": now,
                },
            )
            _logger.info("Registry entry created: key=%s", product_key)
        except Exception as exc:
            _logger.exception("Registry update failed: key=%s", product_key)
            raise StorageWriteError(f"Failed to update registry for {product_name}") from exc

    def check_classification_corrections(
        self, user_input: str | None, user_id: UUID | None
    ) -> RegistryMatch | None:
        """Return the event type the user previously corrected this input to."""
        if not user_input or user_id is None:
            return None
        try:
            correction = self.repository.find_correction(user_id, user_input)
        except Exception as exc:
            if not is_missing_table(exc) and not is_not_found(exc):
                _logger.exception("Correction lookup failed: input=%s", user_input)
            return None
        if correction is None:
            return None
        return RegistryMatch(
            event_type=correction.corrected_event_type,
            product_name=correction.selected_product_name or user_input,
            brand=None,
            times_logged=0,
            source=SOURCE_CORRECTION,
        )

    def _existing_entry(self, user_id: UUID, product_key: str) -> RegistryEntry | None:
        try:
            return self.repository.get_entry(user_id, product_key)
        except Exception as exc:
            if is_not_found(exc):
                return None
            raise


def _to_match(entry: RegistryEntry, source: str) -> RegistryMatch:
    return RegistryMatch(
        event_type=entry.event_type,
        product_name=entry.product_name,
        brand=entry.brand,
        times_logged=entry.times_logged,
        source=source,
    )
