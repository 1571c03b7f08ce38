"""Barcode validation and stale-binding conflict detection."""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from health_tracker.domain.products import (
    FOOD,
    NO_CONFLICT,
    BarcodeBinding,
    BarcodeConflict,
    BarcodeValidation,
    DetectedProduct,
)
from health_tracker.services.normalization import normalize_key

_BARCODE_FORMATS = {8: "UPC-E", 12: "UPC-A", 13: "EAN-13"}
_SEPARATORS = re.compile(r"[\s-]+")

_logger = logging.getLogger(__name__)


def validate_barcode(raw: str | None) -> BarcodeValidation:
    """Validate a scanned code and normalize it to its digits."""
    if raw is None or not str(raw).strip():
        return BarcodeValidation(
            valid=False, reason="not_provided", message="No barcode provided"
        )
    cleaned = _SEPARATORS.sub("", str(raw))
    upper = cleaned.upper()
    if upper.startswith("X00"):
        return BarcodeValidation(
            valid=False,
            reason="amazon_fnsku",
            message=(
                "This is an Amazon FNSKU label (X00...), not the manufacturer "
                "barcode. Scan the UPC or EAN printed on the product packaging."
            ),
        )
    if upper.startswith("LPN"):
        return BarcodeValidation(
            valid=False,
            reason="amazon_lpn",
            message=(
                "This is an Amazon warehouse LPN label, not a product barcode. "
                "Scan the UPC or EAN printed on the product packaging."
            ),
        )
    digit_count = sum(char.isdigit() for char in cleaned)
    barcode_format = _BARCODE_FORMATS.get(len(cleaned)) if cleaned.isdigit() else None
    if barcode_format is None:
        return BarcodeValidation(
            valid=False,
            reason="unknown_format",
            message=(
                f"Unrecognized barcode format ({digit_count} digits). Expected "
                "8 (UPC-E), 12 (UPC-A) or 13 (EAN-13) digits."
            ),
        )
    return BarcodeValidation(valid=True, normalized=cleaned, format=barcode_format)


class BarcodeRepository(Protocol):
    """Persistence interface for barcode bindings."""

    def find_barcode_binding(self, barcode: str) -> BarcodeBinding | None:
        """Return the binding for a normalized barcode, with its product."""

    def flag_barcode_for_reverification(self, barcode: str) -> None:
        """Mark a binding as needing re-confirmation."""


@dataclass
class BarcodeConflictDetector:
    """Decides whether a barcode's stored product no longer matches the package."""

    repository: BarcodeRepository
    food_staleness_months: int = 18
    product_staleness_months: int = 36

    def check_barcode_conflict(
        self,
        barcode: str | None,
        detected_name: str | None,
        detected_brand: str | None,
    ) -> BarcodeConflict:
        """Look up the barcode and evaluate it against the detected product."""
        validation = validate_barcode(barcode)
        if not validation.valid or validation.normalized is None:
            return NO_CONFLICT
        try:
            binding = self.repository.find_barcode_binding(validation.normalized)
        except Exception:
            _logger.exception("Barcode conflict lookup failed: barcode=%s", barcode)
            return NO_CONFLICT
        if binding is None:
            return NO_CONFLICT
        return self.evaluate(binding, detected_name, detected_brand)

    def evaluate(
        self,
        binding: BarcodeBinding,
        detected_name: str | None,
        detected_brand: str | None,
        now: datetime | None = None,
    ) -> BarcodeConflict:
        """Evaluate an already fetched binding; flags it on a stale mismatch."""
        product = binding.product
        detected = DetectedProduct(name=detected_name, brand=detected_brand)
        if binding.needs_reverification:
            return BarcodeConflict(
                conflict=True,
                reason="previously_flagged",
                suggestion=(
                    "This barcode was already flagged for reverification. "
                    "Please confirm the product details."
                ),
                existing_product=product,
                detected_product=detected,
            )
        moment = now or datetime.now(tz=UTC)
        months = self.staleness_months(product.product_type)
        if not is_stale(binding.last_scanned_at, months, moment):
            return NO_CONFLICT
        if _is_similar(detected_name, product.product_name) and _is_similar(
            detected_brand, product.brand
        ):
            return NO_CONFLICT
        try:
            self.repository.flag_barcode_for_reverification(binding.barcode)
        except Exception:
            _logger.exception("Failed to flag barcode: barcode=%s", binding.barcode)
            return NO_CONFLICT
        age = months_between(binding.last_scanned_at, moment)
        _logger.info(
            "Stale barcode mismatch: barcode=%s age_months=%s", binding.barcode, age
        )
        return BarcodeConflict(
            conflict=True,
            reason="stale_with_mismatch",
            suggestion=_mismatch_suggestion(product.product_type, age),
            existing_product=product,
            detected_product=detected,
        )

    def staleness_months(self, product_type: str) -> int:
        """Return the freshness window for a product type."""
        if product_type == FOOD:
            return self.food_staleness_months
        return self.product_staleness_months


def is_stale(last_scanned_at: datetime | None, months: int, now: datetime) -> bool:
    """Return whether a scan timestamp is older than the given calendar months."""
    if last_scanned_at is None:
        return False
    return _as_utc(last_scanned_at) < subtract_months(_as_utc(now), months)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move a timestamp back by calendar months, clamping the day of month."""
    total = moment.year * 12 + (moment.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def months_between(start: datetime | None, end: datetime) -> int:
    """Return the number of whole calendar months from start to end."""
    if start is None:
        return 0
    start, end = _as_utc(start), _as_utc(end)
    months = (end.year - start.year) * 12 + end.month - start.month
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _is_similar(detected: str | None, existing: str | None) -> bool:
    """Substring match in either direction; missing values never conflict."""
    left = normalize_key(detected)
    right = normalize_key(existing)
    if not left or not right:
        return True
    return left in right or right in left


def _mismatch_suggestion(product_type: str, age_months: int) -> str:
    if product_type == FOOD:
        return (
            "This food product barcode may have been reassigned to a different "
            f"product. Last verified {age_months} months ago. "
            "Please confirm the product details."
        )
    return (
        f"Product name mismatch detected for this {product_type} barcode "
        f"(last verified {age_months} months ago). "
        "Please confirm the product details."
    )
