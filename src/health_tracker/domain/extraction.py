"""Models for structured extraction results from the LLM oracle."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from health_tracker.domain.errors import ExtractionContractError

EventType = Literal[
    "food",
    "glucose",
    "insulin",
    "activity",
    "supplement",
    "sauna",
    "medication",
    "symptom",
]
ProductType = Literal["food", "supplement", "medication"]


class ActiveIngredientModel(BaseModel):
    """Active ingredient read from a supplement or medication label."""

    name: str
    strength: str | None = None
    atc_code: str | None = None


class ProductDraft(BaseModel):
    """Product details ready to be added to the shared catalog."""

    product_name: str = Field(min_length=1)
    brand: str | None = None
    barcode: str | None = None
    product_type: ProductType = "food"
    serving_quantity: float | None = None
    serving_unit: str | None = None
    serving_weight_grams: float | None = None
    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    micros: dict[str, dict[str, Any]] = Field(default_factory=dict)
    active_ingredients: list[ActiveIngredientModel] = Field(default_factory=list)
    package_quantity: float | None = None
    container_type: str | None = None


class LabelExtraction(ProductDraft):
    """Product draft read from label photos, with OCR confidence."""

    confidence: int = Field(ge=0, le=100)


class ExtractionResult(BaseModel):
    """Validated event extraction from free text or an image."""

    event_type: EventType
    event_data: dict[str, Any]
    confidence: int = Field(default=0, ge=0, le=100)
    complete: bool
    missing_fields: list[str] = Field(default_factory=list)

    def ensure_usable(self) -> "ExtractionResult":
        """Return self, or raise when required fields are missing."""
        if self.missing_fields:
            missing = ", ".join(self.missing_fields)
            raise ExtractionContractError(
                f"{self.event_type} extraction is missing required fields: {missing}"
            )
        return self


class IngredientCandidate(BaseModel):
    """Active ingredient the LLM names for a medication brand."""

    name: str = Field(min_length=1)
    strength: str | None = None
    common_names: list[str] = Field(default_factory=list)


class BrandIngredients(BaseModel):
    """LLM answer mapping a brand name to its active ingredients."""

    ingredients: list[IngredientCandidate] = Field(default_factory=list)
    confidence: int = Field(default=0, ge=0, le=100)
