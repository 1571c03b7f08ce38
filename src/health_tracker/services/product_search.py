"""Search of public product databases for items missing from the catalog."""

import asyncio
import logging
import math
import re
from dataclasses import dataclass

from health_tracker.adapters.fdc_client import FdcClient
from health_tracker.adapters.open_food_facts_client import OpenFoodFactsClient
from health_tracker.domain.search import ExternalProduct
from health_tracker.services.cache import Cache
from health_tracker.services.normalization import phonetic_variations

SEARCHABLE_EVENT_TYPES = ("food", "supplement", "medication")
MAX_RESULTS = 10
PRIMARY_PAGE_SIZE = 12
VARIATION_PAGE_SIZE = 8

_FDC_NUTRIENTS = {
    "Energy": "calories",
    "Protein": "protein",
    "Carbohydrate, by difference": "carbs",
    "Total lipid (fat)": "fat",
}
_VOWELS = re.compile(r"[aeiou]")

_logger = logging.getLogger(__name__)


def should_search_products(event_type: str | None) -> bool:
    """Return whether an event type refers to a product worth searching for."""
    return event_type in SEARCHABLE_EVENT_TYPES


def are_phonetically_close(first: str, second: str) -> bool:
    """Compare consonant skeletons by containment in either direction."""
    left = _VOWELS.sub("", first)
    right = _VOWELS.sub("", second)
    return left in right or right in left


def calculate_match_confidence(
    query: str, product_name: str | None, brand: str | None
) -> int:
    """Score 0-100 how well a product name and brand answer a query."""
    if not product_name:
        return 0
    query_lower = query.lower()
    name_lower = product_name.lower()
    brand_lower = (brand or "").lower()
    if name_lower == query_lower:
        score = 100.0
    elif query_lower in name_lower:
        score = 80.0
    else:
        query_words = query_lower.split()
        name_words = name_lower.split()
        matching = [
            word
            for word in query_words
            if any(word in other or other in word for other in name_words)
        ]
        score = len(matching) / len(query_words) * 60 if query_words else 0.0
    if brand and brand_lower in query_lower:
        score += 20
    if are_phonetically_close(query_lower, name_lower) or (
        brand and are_phonetically_close(query_lower, brand_lower)
    ):
        score += 15
    return min(100, math.floor(score + 0.5))


@dataclass
class ProductSearchService:
    """Queries Open Food Facts and USDA FDC, including phonetic spellings."""

    off_client: OpenFoodFactsClient
    fdc_client: FdcClient | None
    cache: Cache
    search_ttl_seconds: int = 3600

    async def search_all_products(self, query: str) -> list[ExternalProduct]:
        """Return the best external candidates for a spoken product name."""
        cleaned = query.strip()
        if not cleaned:
            return []
        cache_key = f"products:search:{cleaned.lower()}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, tuple):
            return list(cached)

        searches = [
            self.search_open_food_facts(cleaned, PRIMARY_PAGE_SIZE),
            self.search_fdc(cleaned, PRIMARY_PAGE_SIZE),
        ]
        for variation in phonetic_variations(cleaned):
            searches.append(self.search_open_food_facts(variation, VARIATION_PAGE_SIZE))
            searches.append(self.search_fdc(variation, VARIATION_PAGE_SIZE))
        batches = await asyncio.gather(*searches)

        unique: list[ExternalProduct] = []
        seen: set[str] = set()
        for product in (item for batch in batches for item in batch):
            key = re.sub(r"\s+", "", f"{product.name}-{product.brand}".lower())
            if key in seen:
                continue
            seen.add(key)
            unique.append(product)
        unique.sort(key=lambda product: product.confidence, reverse=True)
        results = unique[:MAX_RESULTS]
        _logger.info("Product search: query=%s results=%s", cleaned, len(results))
        self.cache.set(cache_key, tuple(results), ttl_seconds=self.search_ttl_seconds)
        return results

    async def search_open_food_facts(
        self, query: str, limit: int = 10
    ) -> list[ExternalProduct]:
        """Search Open Food Facts; failures yield no results."""
        try:
            payload = await self.off_client.search_products(query, page_size=limit)
        except Exception as exc:
            _logger.warning("Open Food Facts search failed: query=%s error=%s", query, exc)
            return []
        products = [
            _parse_off_product(query, product) for product in payload.get("products") or []
        ]
        return sorted(products, key=lambda product: product.confidence, reverse=True)

    async def search_fdc(self, query: str, limit: int = 10) -> list[ExternalProduct]:
        """Search USDA FoodData Central when configured; failures yield no results."""
        if self.fdc_client is None:
            return []
        try:
            payload = await self.fdc_client.search_foods(query, page_size=limit)
        except Exception as exc:
            _logger.warning("FDC search failed: query=%s error=%s", query, exc)
            return []
        products = [_parse_fdc_food(query, food) for food in payload.get("foods") or []]
        return sorted(products, key=lambda product: product.confidence, reverse=True)


def _parse_off_product(query: str, product: dict[str, object]) -> ExternalProduct:
    nutriments = product.get("nutriments") or {}
    name = product.get("product_name") or product.get("product_name_en")
    brand = product.get("brands")
    return ExternalProduct(
        source="openfoodfacts",
        id=str(product.get("code") or ""),
        name=name,
        brand=brand,
        category=product.get("categories"),
        serving_size=product.get("serving_size"),
        nutrients={
            "calories": nutriments.get("energy-kcal_100g"),
            "protein": nutriments.get("proteins_100g"),
            "carbs": nutriments.get("carbohydrates_100g"),
            "fat": nutriments.get("fat_100g"),
        },
        image_url=product.get("image_url"),
        confidence=calculate_match_confidence(query, name, brand),
    )


def _parse_fdc_food(query: str, food: dict[str, object]) -> ExternalProduct:
    nutrients: dict[str, float | None] = {}
    for nutrient in food.get("foodNutrients") or []:
        key = _FDC_NUTRIENTS.get(nutrient.get("nutrientName"))
        if key is not None:
            nutrients[key] = nutrient.get("value")
    serving_size = food.get("servingSize")
    name = food.get("description")
    brand = food.get("brandOwner")
    return ExternalProduct(
        source="usda",
        id=str(food.get("fdcId") or ""),
        name=name,
        brand=brand,
        category=food.get("foodCategory"),
        serving_size=(
            f"{serving_size} {food.get('servingSizeUnit') or ''}".strip()
            if serving_size
            else None
        ),
        nutrients=nutrients,
        confidence=calculate_match_confidence(query, name, brand),
    )
