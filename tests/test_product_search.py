"""Tests for external product search."""

import asyncio

import httpx

from health_tracker.services.cache import InMemoryCache
from health_tracker.services.product_search import (
    ProductSearchService,
    are_phonetically_close,
    calculate_match_confidence,
    should_search_products,
)
from tests.conftest import FakeFdcClient, FakeOpenFoodFactsClient


def _off_product(name: str, brand: str, code: str) -> dict[str, object]:
    return {
        "code": code,
        "product_name": name,
        "brands": brand,
        "nutriments": {"energy-kcal_100g": 0, "proteins_100g": 0},
    }


def test_should_search_products_only_for_products() -> None:
    assert should_search_products("supplement")
    assert should_search_products("food")
    assert not should_search_products("glucose")
    assert not should_search_products(None)


def test_match_confidence_levels() -> None:
    assert calculate_match_confidence("lemonade", "Lemonade", None) == 100
    assert calculate_match_confidence("magtein", "Magtein Magnesium", "NOW") == 95
    assert calculate_match_confidence("vitamin d3 drops", "Vitamin D3", None) == 55
    assert calculate_match_confidence("element", "Citrus Salt", "LMNT") == 15
    assert calculate_match_confidence("element", None, "LMNT") == 0


def test_phonetic_closeness() -> None:
    assert are_phonetically_close("element", "lmnt")
    assert not are_phonetically_close("creatine", "lmnt")


def test_search_combines_sources_and_variations() -> None:
    off = FakeOpenFoodFactsClient(
        payloads={
            "element": {"products": []},
            "lmnt": {
                "products": [
                    _off_product("LMNT Citrus Salt", "LMNT", "850002883016"),
                    _off_product("LMNT Citrus Salt", "LMNT", "850002883017"),
                ]
            },
        }
    )
    fdc = FakeFdcClient()
    service = ProductSearchService(off, fdc, InMemoryCache())

    results = asyncio.run(service.search_all_products("element"))

    assert off.queries == ["element", "lmnt"]
    assert fdc.queries == ["element", "lmnt"]
    names = [(product.source, product.name) for product in results]
    assert names.count(("openfoodfacts", "LMNT Citrus Salt")) == 1
    assert ("usda", "Lemonade") in names
    assert results == sorted(results, key=lambda p: p.confidence, reverse=True)


def test_search_results_are_cached() -> None:
    off = FakeOpenFoodFactsClient(
        payloads={"Magtein": {"products": [_off_product("Magtein", "NOW", "1")]}}
    )
    service = ProductSearchService(off, None, InMemoryCache())

    first = asyncio.run(service.search_all_products("Magtein"))
    second = asyncio.run(service.search_all_products("magtein "))

    assert first
    assert first == second
    assert off.queries == ["Magtein", "mgtn"]


def test_mutating_search_results_leaves_cache_intact() -> None:
    off = FakeOpenFoodFactsClient(
        payloads={"Magtein": {"products": [_off_product("Magtein", "NOW", "1")]}}
    )
    service = ProductSearchService(off, None, InMemoryCache())

    first = asyncio.run(service.search_all_products("Magtein"))
    expected = list(first)
    first.clear()
    second = asyncio.run(service.search_all_products("Magtein"))
    second.append(expected[0])
    third = asyncio.run(service.search_all_products("Magtein"))

    assert second[:1] == expected
    assert third == expected
    assert off.queries == ["Magtein", "mgtn"]


def test_search_caps_results() -> None:
    products = [
        _off_product(f"Protein Bar {index}", "Quest", str(index)) for index in range(15)
    ]
    off = FakeOpenFoodFactsClient(payloads={"bar": {"products": products}})
    service = ProductSearchService(off, None, InMemoryCache())

    results = asyncio.run(service.search_all_products("bar"))

    assert len(results) == 10


def test_source_failures_yield_partial_results() -> None:
    off = FakeOpenFoodFactsClient(error=httpx.ConnectError("offline"))
    fdc = FakeFdcClient()
    service = ProductSearchService(off, fdc, InMemoryCache())

    results = asyncio.run(service.search_all_products("lemonade"))

    assert [product.source for product in results] == ["usda"]
    assert results[0].nutrients == {"calories": 40, "protein": 0}
    assert results[0].serving_size == "240 ml"


def test_blank_query_returns_nothing() -> None:
    off = FakeOpenFoodFactsClient()
    service = ProductSearchService(off, None, InMemoryCache())

    assert asyncio.run(service.search_all_products("   ")) == []
    assert off.queries == []


def test_in_memory_cache_evicts_oldest() -> None:
    cache = InMemoryCache(max_entries=2)
    cache.set("a", 1, ttl_seconds=60)
    cache.set("b", 2, ttl_seconds=60)
    cache.get("a")
    cache.set("c", 3, ttl_seconds=60)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_in_memory_cache_expires_entries() -> None:
    cache = InMemoryCache()
    cache.set("a", 1, ttl_seconds=0)

    assert cache.get("a") is None
