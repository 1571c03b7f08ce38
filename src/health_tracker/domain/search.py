"""Models for external product database search results."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExternalProduct:
    """Product candidate returned by a public product database."""

    source: str
    id: str
    name: str | None
    brand: str | None
    category: str | None = None
    serving_size: str | None = None
    nutrients: dict[str, float | None] = field(default_factory=dict)
    image_url: str | None = None
    confidence: int = 0
