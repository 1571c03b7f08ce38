"""Order-independent fingerprints for sets of logged items."""

from collections.abc import Iterable

from health_tracker.domain.events import PatternItem
from health_tracker.services.normalization import normalize_key

SEPARATOR = "|"


def generate_meal_fingerprint(items: Iterable[PatternItem] | None) -> str:
    """Join sorted item identities (product id, else normalized name) with '|'."""
    if not items:
        return ""
    identities = [item.product_id or normalize_key(item.name) for item in items]
    return SEPARATOR.join(sorted(identity for identity in identities if identity))


def calculate_pattern_similarity(first: str | None, second: str | None) -> float:
    """Return the Jaccard similarity of two fingerprints; empty input scores 0."""
    if not first or not second:
        return 0.0
    left = set(first.split(SEPARATOR))
    right = set(second.split(SEPARATOR))
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)
