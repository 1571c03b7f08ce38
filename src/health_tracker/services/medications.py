"""Medication normalization: brand names to INN ingredients and ATC codes.

A brand such as "Advil", "Nurofen" or "Doliprane 500mg" is resolved by the
LLM into its active ingredients, which are then matched against the local
WHO ATC table. Dose checks compare a user's daily intake with the ATC
defined daily dose (DDD).
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from health_tracker.domain.extraction import BrandIngredients
from health_tracker.domain.medications import (
    NO_DOSE_CHECK,
    AtcCode,
    DoseCheck,
    MedicationIngredient,
    MedicationInfo,
    NormalizedMedication,
)
from health_tracker.domain.queries import Predicate, contains_any
from health_tracker.services.extraction import ExtractionClient
from health_tracker.services.outcomes import is_not_found

UNITS = "U"
_MG_PER_UNIT = {"g": 1000.0, "mg": 1.0, "mcg": 0.001, "μg": 0.001, "µg": 0.001}
_FUZZY_LIMIT = 5

MEDICATION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "ingredients": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "strength": {"anyOf": [{"type": "string"}, {"type": "null"}]},
                    "common_names": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["name", "strength", "common_names"],
            },
        },
        "confidence": {"type": "integer", "minimum": 0, "maximum": 100},
    },
    "required": ["ingredients", "confidence"],
}

_PROMPT = """You are a pharmaceutical expert. Identify the active ingredient(s) \
in this medication.

Medication: "{medication}"

Rules:
1. Return only the active ingredient names, never the brand name.
2. For multi-ingredient drugs (NyQuil, Tylenol Cold) list every active ingredient.
3. Use international non-proprietary names (INN), e.g. "Paracetamol" rather \
than "Acetaminophen", and list regional names under common_names.
4. If no strength is given, use the most common strength, e.g. "200mg".

Examples:
"Advil" -> Ibuprofen 200mg
"Doliprane 500mg" -> Paracetamol 500mg (common names: Acetaminophen, Paracetamol)
"NyQuil" -> Paracetamol 650mg, Dextromethorphan 30mg, Doxylamine 12.5mg

Also return a confidence (0-100)."""

_logger = logging.getLogger(__name__)


class AtcCodeRepository(Protocol):
    """Read-only access to the WHO ATC reference table."""

    def find_by_name(self, name: str) -> AtcCode | None:
        """Return the code whose name equals the given name, ignoring case."""

    def search_by_name(self, predicates: list[Predicate], limit: int) -> list[AtcCode]:
        """Return codes matching any of the predicates."""

    def get_by_code(self, code: str) -> AtcCode | None:
        """Return a code by its ATC identifier, e.g. "M01AE01"."""


@dataclass
class MedicationService:
    """Resolves medication brands to ingredients and checks daily doses."""

    client: ExtractionClient
    repository: AtcCodeRepository
    model: str
    reasoning_effort: str | None
    store: bool
    ddd_warning_ratio: float = 1.5

    async def brand_to_ingredient(
        self, brand_name: str | None, strength: str | None = None
    ) -> list[MedicationIngredient]:
        """Return the active ingredients of a brand, enriched with ATC data.

        Failures of the LLM call or an unusable answer yield no ingredients.
        """
        if not brand_name or not brand_name.strip():
            return []
        medication = f"{brand_name.strip()} {strength or ''}".strip()
        try:
            raw = await self.client.extract(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                content=[
                    {"type": "input_text", "text": _PROMPT.format(medication=medication)}
                ],
                schema=MEDICATION_SCHEMA,
                schema_name="medication_ingredients",
            )
            answer = BrandIngredients.model_validate(raw)
        except Exception as exc:
            _logger.warning(
                "Brand ingredient lookup failed: brand=%s error=%s", medication, exc
            )
            return []
        ingredients = []
        for candidate in answer.ingredients:
            atc = self.lookup_atc_code(candidate.name)
            ingredients.append(
                MedicationIngredient(
                    name=candidate.name,
                    strength=candidate.strength,
                    atc_code=atc.code if atc else None,
                    category=atc.category if atc else None,
                    ddd=atc.ddd if atc else None,
                    ddd_unit=atc.ddd_unit if atc else None,
                    common_names=list(candidate.common_names),
                )
            )
        _logger.info(
            "Brand resolved: brand=%s ingredients=%s confidence=%s",
            medication,
            len(ingredients),
            answer.confidence,
        )
        return ingredients

    def lookup_atc_code(self, ingredient_name: str | None) -> AtcCode | None:
        """Find the ATC entry for an ingredient name.

        An exact case-insensitive match wins. Otherwise codes containing the
        full name or its first word are considered and the shortest name,
        being the most specific, is returned.
        """
        if not ingredient_name or not ingredient_name.strip():
            return None
        name = ingredient_name.strip().lower()
        try:
            exact = self.repository.find_by_name(name)
            if exact is not None:
                return exact
            terms = list(dict.fromkeys([name, name.split()[0]]))
            candidates = self.repository.search_by_name(
                contains_any(["name"], terms), _FUZZY_LIMIT
            )
        except Exception as exc:
            if not is_not_found(exc):
                _logger.exception("ATC lookup failed: name=%s", name)
            return None
        if not candidates:
            return None
        return min(candidates, key=lambda candidate: len(candidate.name))

    def check_against_ddd(
        self, atc_code: str | None, daily_dose_mg: float | None
    ) -> DoseCheck:
        """Compare a daily dose in mg with the defined daily dose of a code."""
        if not atc_code or not daily_dose_mg:
            return NO_DOSE_CHECK
        try:
            atc = self.repository.get_by_code(atc_code)
        except Exception as exc:
            if not is_not_found(exc):
                _logger.exception("DDD lookup failed: code=%s", atc_code)
            return NO_DOSE_CHECK
        if atc is None:
            return NO_DOSE_CHECK
        return self._compare_dose(atc, daily_dose_mg)

    async def normalize_medication_for_registry(
        self, user_input: str
    ) -> NormalizedMedication:
        """Return the ingredient-based name under which a medication is registered.

        "Advil 200mg" becomes "Ibuprofen 200mg"; combination products join
        their ingredient names with " + ". Unresolvable input is kept as is.
        """
        ingredients = await self.brand_to_ingredient(user_input)
        if not ingredients:
            return NormalizedMedication(normalized_name=user_input)
        if len(ingredients) == 1:
            ingredient = ingredients[0]
            return NormalizedMedication(
                normalized_name=f"{ingredient.name} {ingredient.strength or ''}".strip(),
                ingredients=ingredients,
            )
        names = " + ".join(ingredient.name for ingredient in ingredients)
        return NormalizedMedication(
            normalized_name=f"{names} (combination)",
            ingredients=ingredients,
            is_multi_ingredient=True,
        )

    def get_medication_info(
        self, ingredient_name: str, daily_dose_mg: float | None = None
    ) -> MedicationInfo:
        """Return ATC classification and a dose warning for display."""
        atc = self.lookup_atc_code(ingredient_name)
        if atc is None:
            return MedicationInfo(name=ingredient_name, category="Unknown")
        warning = None
        safe_range = None
        if daily_dose_mg and atc.ddd:
            standard = f"{atc.ddd:g}{atc.ddd_unit or ''}"
            check = self._compare_dose(atc, daily_dose_mg)
            if check.is_above_ddd:
                warning = (
                    f"Daily dose ({daily_dose_mg:g}mg) is {check.ratio:.1f}x "
                    f"the WHO standard ({standard})"
                )
            safe_range = f"Standard daily dose: {standard}"
        return MedicationInfo(
            name=atc.name,
            atc_code=atc.code,
            category=atc.category,
            warning=warning,
            safe_range=safe_range,
        )

    def _compare_dose(self, atc: AtcCode, daily_dose_mg: float) -> DoseCheck:
        if not atc.ddd:
            return NO_DOSE_CHECK
        if atc.ddd_unit == UNITS:
            # Insulin and similar are dosed in units, compared without conversion.
            ratio = daily_dose_mg / atc.ddd
            return DoseCheck(
                is_above_ddd=daily_dose_mg > atc.ddd,
                ratio=ratio,
                ddd=atc.ddd,
                ddd_unit=atc.ddd_unit,
                medication=atc.name,
            )
        ddd_mg = atc.ddd * _MG_PER_UNIT.get(atc.ddd_unit or "mg", 1.0)
        ratio = daily_dose_mg / ddd_mg
        return DoseCheck(
            is_above_ddd=ratio > self.ddd_warning_ratio,
            ratio=ratio,
            ddd=atc.ddd,
            ddd_unit=atc.ddd_unit,
            medication=atc.name,
        )
