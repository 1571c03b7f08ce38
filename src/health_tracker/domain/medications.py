"""Domain models for medication normalization against the WHO ATC table."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AtcCode:
    """Row of the WHO Anatomical Therapeutic Chemical reference table."""

    code: str
    name: str
    category: str | None = None
    ddd: float | None = None
    ddd_unit: str | None = None


@dataclass(frozen=True)
class MedicationIngredient:
    """Active ingredient resolved from a brand name, with its ATC data."""

    name: str
    strength: str | None = None
    atc_code: str | None = None
    category: str | None = None
    ddd: float | None = None
    ddd_unit: str | None = None
    common_names: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NormalizedMedication:
    """Registry-ready medication name and the ingredients behind it."""

    normalized_name: str
    ingredients: list[MedicationIngredient] = field(default_factory=list)
    is_multi_ingredient: bool = False


@dataclass(frozen=True)
class DoseCheck:
    """Comparison of a daily dose with the WHO defined daily dose."""

    is_above_ddd: bool = False
    ratio: float = 0.0
    ddd: float | None = None
    ddd_unit: str | None = None
    medication: str | None = None


NO_DOSE_CHECK = DoseCheck()


@dataclass(frozen=True)
class MedicationInfo:
    """Display summary of a medication ingredient."""

    name: str
    atc_code: str | None = None
    category: str | None = None
    warning: str | None = None
    safe_range: str | None = None
