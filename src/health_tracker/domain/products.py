"""Domain models for the shared product catalog and barcodes."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

FOOD = "food"
SUPPLEMENT = "supplement"
MEDICATION = "medication"
PRODUCT_TYPES = (FOOD, SUPPLEMENT, MEDICATION)


@dataclass(frozen=True)
class ActiveIngredient:
    """Single active ingredient declared on a supplement or medication label."""

    name: str
    strength: str | None = None
    atc_code: str | None = None


@dataclass(frozen=True)
class CatalogProduct:
    """Canonical product record shared across all users."""

    id: UUID
    product_name: str
    brand: str | None
    product_type: str
    product_key: str
    serving_quantity: float | None = None
    serving_unit: str | None = None
    serving_weight_grams: float | None = None
    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    micros: dict[str, dict[str, object]] = field(default_factory=dict)
    active_ingredients: list[ActiveIngredient] = field(default_factory=list)
    times_logged: int = 0
    verification_status: str | None = None


@dataclass(frozen=True)
class BarcodeBinding:
    """Association of a retail barcode with a catalog product."""

    barcode: str
    product_id: UUID
    product: CatalogProduct
    total_quantity: float | None = None
    total_unit: str | None = None
    container_type: str | None = None
    needs_reverification: bool = False
    last_scanned_at: datetime | None = None


@dataclass(frozen=True)
class BarcodeValidation:
    """Outcome of barcode validation."""

    valid: bool
    normalized: str | None = None
    format: str | None = None
    reason: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class DetectedProduct:
    """Product identity as read from the current scan or photo."""

    name: str | None
    brand: str | None


@dataclass(frozen=True)
class BarcodeConflict:
    """Whether a barcode's stored product disagrees with what was detected."""

    conflict: bool
    reason: str | None = None
    suggestion: str | None = None
    existing_product: CatalogProduct | None = None
    detected_product: DetectedProduct | None = None


NO_CONFLICT = BarcodeConflict(conflict=False)


@dataclass(frozen=True)
class CatalogMatch:
    """Catalog product resolved from a barcode or a text search."""

    product: CatalogProduct
    match_method: str
    binding: BarcodeBinding | None = None
    conflict: BarcodeConflict | None = None
    matched_terms: int = 0

    @property
    def needs_reverification(self) -> bool:
        """Return whether the barcode behind this match should be re-checked."""
        if self.conflict is not None and self.conflict.conflict:
            return True
        return self.binding is not None and self.binding.needs_reverification


@dataclass(frozen=True)
class PackageInfo:
    """Retail package details recorded with a barcode."""

    total_quantity: float | None = None
    total_unit: str | None = None
    container_type: str | None = None


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of submitting a photographed label to the catalog."""

    status: str
    submission_id: UUID | None = None
    product: CatalogProduct | None = None
    existing_product: CatalogProduct | None = None
