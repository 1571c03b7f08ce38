"""Shared product catalog matching and maintenance."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from health_tracker.domain.errors import (
    BarcodeAlreadyRegisteredError,
    InvalidBarcodeError,
    StorageWriteError,
    UnauthenticatedError,
)
from health_tracker.domain.extraction import LabelExtraction, ProductDraft
from health_tracker.domain.products import (
    BarcodeBinding,
    CatalogMatch,
    CatalogProduct,
    PackageInfo,
    SubmissionResult,
)
from health_tracker.domain.queries import Predicate, contains_any
from health_tracker.services.barcodes import (
    BarcodeConflictDetector,
    BarcodeRepository,
    validate_barcode,
)
from health_tracker.services.normalization import normalize_key
from health_tracker.services.outcomes import attempt, is_unique_violation
from health_tracker.services.registry import RegistryService

SEARCH_FIELDS = ("product_name", "brand", "product_key")
BARCODE_MATCH = "barcode"
TEXT_MATCH = "text_search"

SUBMISSION_PENDING = "pending"
SUBMISSION_DUPLICATE = "duplicate"
SUBMISSION_ACCEPTED = "accepted"

_logger = logging.getLogger(__name__)


class CatalogRepository(BarcodeRepository, Protocol):
    """Persistence interface for the shared catalog."""

    def touch_barcode(self, barcode: str, scanned_at: datetime) -> None:
        """Refresh the last scan time of a binding."""

    def search_products(
        self, predicates: list[Predicate], limit: int
    ) -> list[CatalogProduct]:
        """Return products matching ANY predicate, most logged first."""

    def increment_times_logged(self, product_id: UUID) -> None:
        """Increment a product's popularity counter."""

    def create_product(self, payload: dict[str, object]) -> CatalogProduct:
        """Insert a catalog product and return it."""

    def create_barcode_binding(self, payload: dict[str, object]) -> BarcodeBinding:
        """Insert a barcode binding and return it."""

    def create_submission(self, payload: dict[str, object]) -> UUID:
        """Insert a product submission audit row and return its id."""


@dataclass
class CatalogService:
    """Resolves detected products to canonical catalog rows."""

    repository: CatalogRepository
    conflict_detector: BarcodeConflictDetector
    registry_service: RegistryService | None = None
    candidate_limit: int = 25
    ocr_confidence_cutoff: int = 70

    def find_catalog_match(
        self,
        product_name: str | None,
        brand: str | None = None,
        barcode: str | None = None,
    ) -> CatalogMatch | None:
        """Match by barcode first, then by multi-term text search."""
        try:
            match = None
            if barcode:
                match = self._match_by_barcode(barcode, product_name, brand)
            if match is None:
                match = self._match_by_text(product_name, brand)
        except Exception:
            _logger.exception(
                "Catalog match failed: product=%s brand=%s", product_name, brand
            )
            return None
        if match is not None:
            self.increment_product_usage(match.product.id)
        return match

    def lookup_by_barcode(self, barcode: str | None) -> CatalogMatch | None:
        """Return the product bound to a barcode, or None."""
        validation = validate_barcode(barcode)
        if not validation.valid or validation.normalized is None:
            return None
        try:
            binding = self.repository.find_barcode_binding(validation.normalized)
        except Exception:
            _logger.exception("Barcode lookup failed: barcode=%s", barcode)
            return None
        if binding is None:
            return None
        return CatalogMatch(
            product=binding.product, match_method=BARCODE_MATCH, binding=binding
        )

    def search_catalog(self, query: str | None, limit: int = 10) -> list[CatalogProduct]:
        """Search the catalog for a phrase, most popular first."""
        phrase = (query or "").strip().lower()
        if not phrase:
            return []
        try:
            return self.repository.search_products(
                contains_any(SEARCH_FIELDS, [phrase]), limit
            )
        except Exception:
            _logger.exception("Catalog search failed: query=%s", query)
            return []

    def increment_product_usage(self, product_id: UUID) -> bool:
        """Best-effort increment of a product's popularity counter."""
        return attempt(
            "catalog usage increment", self.repository.increment_times_logged, product_id
        ).succeeded

    def add_product_to_catalog(
        self, draft: ProductDraft, user_id: UUID | None
    ) -> CatalogProduct:
        """Insert a new catalog product and link its barcode when valid."""
        if user_id is None:
            raise UnauthenticatedError
        payload = _product_payload(draft, user_id)
        try:
            product = self.repository.create_product(payload)
        except Exception as exc:
            _logger.exception("Catalog insert failed: product=%s", draft.product_name)
            raise StorageWriteError(f"Failed to add {draft.product_name}") from exc
        if draft.barcode:
            validation = validate_barcode(draft.barcode)
            if validation.valid and validation.normalized is not None:
                attempt(
                    "barcode link",
                    self.repository.create_barcode_binding,
                    _binding_payload(
                        validation.normalized,
                        product.id,
                        PackageInfo(
                            total_quantity=draft.package_quantity,
                            total_unit=draft.serving_unit,
                            container_type=draft.container_type,
                        ),
                        user_id,
                    ),
                )
            else:
                _logger.info(
                    "Skipping barcode link: barcode=%s reason=%s",
                    draft.barcode,
                    validation.reason,
                )
        return product

    def add_barcode_to_product(
        self,
        barcode: str | None,
        product_id: UUID,
        packaging: PackageInfo | None = None,
        user_id: UUID | None = None,
    ) -> BarcodeBinding:
        """Bind a new barcode (package size) to an existing product."""
        if user_id is None:
            raise UnauthenticatedError
        validation = validate_barcode(barcode)
        if not validation.valid or validation.normalized is None:
            raise InvalidBarcodeError(validation)
        payload = _binding_payload(
            validation.normalized, product_id, packaging or PackageInfo(), user_id
        )
        try:
            return self.repository.create_barcode_binding(payload)
        except Exception as exc:
            if is_unique_violation(exc):
                raise BarcodeAlreadyRegisteredError(validation.normalized) from exc
            _logger.exception("Barcode link failed: barcode=%s", validation.normalized)
            raise StorageWriteError(
                f"Failed to link barcode {validation.normalized}"
            ) from exc

    def submit_label_extraction(
        self,
        extraction: LabelExtraction,
        user_id: UUID | None,
        front_photo_url: str | None = None,
        label_photo_url: str | None = None,
    ) -> SubmissionResult:
        """Route a label extraction to review, duplicate, or a new product."""
        if user_id is None:
            raise UnauthenticatedError
        submission = {
            "user_id": str(user_id),
            "photo_front_url": front_photo_url,
            "photo_label_url": label_photo_url,
            "extracted_data": extraction.model_dump(mode="json"),
            "ocr_confidence": extraction.confidence,
        }
        if extraction.confidence < self.ocr_confidence_cutoff:
            submission_id = self._record_submission(
                {**submission, "status": SUBMISSION_PENDING}
            )
            _logger.info(
                "Label submitted for manual review: confidence=%s",
                extraction.confidence,
            )
            return SubmissionResult(
                status=SUBMISSION_PENDING, submission_id=submission_id
            )

        existing = self.lookup_by_barcode(extraction.barcode)
        if existing is not None:
            submission_id = self._record_submission(
                {
                    **submission,
                    "status": SUBMISSION_DUPLICATE,
                    "product_catalog_id": str(existing.product.id),
                }
            )
            return SubmissionResult(
                status=SUBMISSION_DUPLICATE,
                submission_id=submission_id,
                existing_product=existing.product,
            )

        product = self.add_product_to_catalog(extraction, user_id)
        submission_id = self._record_submission(
            {
                **submission,
                "status": SUBMISSION_ACCEPTED,
                "product_catalog_id": str(product.id),
            }
        )
        if self.registry_service is not None:
            attempt(
                "registry learn",
                self.registry_service.update_user_product_registry,
                user_id,
                product.product_type,
                product.product_name,
                product.brand,
            )
        return SubmissionResult(
            status=SUBMISSION_ACCEPTED, submission_id=submission_id, product=product
        )

    def _record_submission(self, payload: dict[str, object]) -> UUID:
        try:
            return self.repository.create_submission(payload)
        except Exception as exc:
            _logger.exception("Submission insert failed: status=%s", payload["status"])
            raise StorageWriteError("Failed to record product submission") from exc

    def _match_by_barcode(
        self, barcode: str, product_name: str | None, brand: str | None
    ) -> CatalogMatch | None:
        validation = validate_barcode(barcode)
        if not validation.valid or validation.normalized is None:
            _logger.info(
                "Ignoring invalid barcode: barcode=%s reason=%s",
                barcode,
                validation.reason,
            )
            return None
        binding = self.repository.find_barcode_binding(validation.normalized)
        if binding is None:
            return None
        # Staleness is judged on the scan time stored before this lookup.
        conflict = self.conflict_detector.evaluate(binding, product_name, brand)
        attempt(
            "barcode scan refresh",
            self.repository.touch_barcode,
            binding.barcode,
            datetime.now(tz=UTC),
        )
        return CatalogMatch(
            product=binding.product,
            match_method=BARCODE_MATCH,
            binding=binding,
            conflict=conflict,
        )

    def _match_by_text(
        self, product_name: str | None, brand: str | None
    ) -> CatalogMatch | None:
        query = f"{brand} {product_name or ''}" if brand else product_name or ""
        terms = list(dict.fromkeys(query.lower().split()))
        if not terms:
            return None
        candidates = self.repository.search_products(
            contains_any(SEARCH_FIELDS, terms), self.candidate_limit
        )
        scored = [
            (count_matched_terms(product, terms), product) for product in candidates
        ]
        scored = [(count, product) for count, product in scored if count > 0]
        if not scored:
            return None
        count, best = max(scored, key=lambda pair: (pair[0], pair[1].times_logged))
        return CatalogMatch(product=best, match_method=TEXT_MATCH, matched_terms=count)


def count_matched_terms(product: CatalogProduct, terms: list[str]) -> int:
    """Count distinct query terms found in a product's name, brand and key."""
    haystack = " ".join(
        part for part in (product.product_name, product.brand, product.product_key) if part
    ).lower()
    return sum(1 for term in set(terms) if term in haystack)


def _product_payload(draft: ProductDraft, user_id: UUID) -> dict[str, object]:
    """Build the catalog insert payload from a product draft."""
    return {
        "product_key": normalize_key(f"{draft.brand or ''} {draft.product_name}"),
        "product_name": draft.product_name,
        "brand": draft.brand,
        "product_type": draft.product_type,
        "serving_quantity": draft.serving_quantity,
        "serving_unit": draft.serving_unit,
        "serving_weight_grams": draft.serving_weight_grams,
        "calories": draft.calories,
        "protein": draft.protein,
        "carbs": draft.carbs,
        "fat": draft.fat,
        "fiber": draft.fiber,
        "sugar": draft.sugar,
        "micros": draft.micros,
        "active_ingredients": [
            ingredient.model_dump() for ingredient in draft.active_ingredients
        ],
        "submitted_by_user_id": str(user_id),
        "verification_status": "unverified",
    }


def _binding_payload(
    barcode: str, product_id: UUID, packaging: PackageInfo, user_id: UUID
) -> dict[str, object]:
    return {
        "barcode": barcode,
        "product_id": str(product_id),
        "total_quantity": packaging.total_quantity,
        "total_unit": packaging.total_unit,
        "container_type": packaging.container_type,
        "submitted_by_user_id": str(user_id),
    }
