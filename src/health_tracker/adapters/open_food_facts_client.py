"""Open Food Facts search client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts product search."""

    async def search_products(self, query: str, page_size: int = 10) -> dict[str, object]:
        """Search products by query and return raw API data."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client; the API needs no key."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient())

    async def search_products(self, query: str, page_size: int = 10) -> dict[str, object]:
        """Full-text search over branded products and supplements."""
        response = await self.http_client.get(
            f"{self.base_url}/cgi/search.pl",
            params={
                "search_terms": query,
                "search_simple": 1,
                "action": "process",
                "json": 1,
                "page_size": page_size,
            },
            timeout=15,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
