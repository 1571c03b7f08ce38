"""Scale per-serving nutrients to the amount actually consumed."""

from decimal import ROUND_HALF_UP, Decimal

from health_tracker.domain.products import CatalogProduct

_ONE_DECIMAL = Decimal("0.1")


def calculate_consumed_nutrients(
    product: CatalogProduct | None, amount_consumed: float
) -> dict[str, dict[str, object]]:
    """Return micros scaled by amount consumed over serving quantity.

    Amounts are rounded half-up to one decimal place. Products without
    micros or without a positive serving quantity yield an empty mapping.
    """
    if product is None or not isinstance(product.micros, dict):
        return {}
    serving_quantity = product.serving_quantity
    if not serving_quantity or serving_quantity <= 0:
        return {}
    consumed = Decimal(str(amount_consumed))
    serving = Decimal(str(serving_quantity))
    scaled: dict[str, dict[str, object]] = {}
    for nutrient, data in product.micros.items():
        if not isinstance(data, dict):
            continue
        amount = data.get("amount")
        if isinstance(amount, bool) or not isinstance(amount, int | float):
            continue
        value = (Decimal(str(amount)) * consumed / serving).quantize(
            _ONE_DECIMAL, rounding=ROUND_HALF_UP
        )
        scaled[nutrient] = {"amount": float(value), "unit": data.get("unit")}
    return scaled


def build_supplement_event_data(  # noqa: PLR0913
    product: CatalogProduct | None,
    amount_consumed: float,
    *,
    is_manual_override: bool = False,
    user_edited_nutrients: dict[str, dict[str, object]] | None = None,
    detected_name: str | None = None,
    detected_brand: str | None = None,
    detected_form: str | None = None,
) -> dict[str, object]:
    """Build the event payload for a supplement or medication dose."""
    if product is None:
        return {
            "product_catalog_id": None,
            "name": detected_name or "Unknown",
            "brand": detected_brand,
            "dosage": _format_amount(amount_consumed),
            "units": detected_form or "capsule",
        }
    if is_manual_override and user_edited_nutrients:
        nutrients = user_edited_nutrients
    else:
        nutrients = calculate_consumed_nutrients(product, amount_consumed)
    return {
        "product_catalog_id": str(product.id),
        "name": product.product_name,
        "brand": product.brand,
        "amount_consumed": amount_consumed,
        "unit": product.serving_unit,
        "calculated_nutrients": nutrients,
        "is_manual_override": is_manual_override,
    }


def _format_amount(amount: float) -> str:
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)
