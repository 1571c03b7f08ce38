"""Canonical keys for product and template names."""

import re

_DROPPED = re.compile(r"[()\"'`‘’“”]")
_SEPARATORS = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_VOWELS = re.compile(r"[aeiou]")


def normalize_key(text: str | None) -> str:
    """Lowercase, drop brackets and quotes, and collapse punctuation to spaces."""
    if not text:
        return ""
    lowered = str(text).lower()
    lowered = _DROPPED.sub("", lowered)
    lowered = _SEPARATORS.sub(" ", lowered)
    return _WHITESPACE.sub(" ", lowered).strip()


def consonant_skeleton(text: str | None) -> str:
    """Return the normalized key with vowels and spaces removed."""
    return _VOWELS.sub("", normalize_key(text)).replace(" ", "")


def phonetic_variations(query: str | None) -> list[str]:
    """Return query variants where words are replaced by their consonants.

    One variant per word that changes when its vowels are removed, then the
    all-words variant when the query has more than one word. Helps find
    brands spelled like their pronunciation ("element" and "lmnt").
    """
    if not query:
        return []
    lowered = query.lower()
    words = lowered.split()
    stripped = [_VOWELS.sub("", word) for word in words]
    variations: list[str] = []
    for index, word in enumerate(words):
        if stripped[index] and stripped[index] != word:
            variant = " ".join([*words[:index], stripped[index], *words[index + 1 :]])
            if variant != lowered and variant not in variations:
                variations.append(variant)
    if len(words) > 1:
        all_stripped = " ".join(stripped)
        if all_stripped != lowered and all_stripped not in variations:
            variations.append(all_stripped)
    return variations
