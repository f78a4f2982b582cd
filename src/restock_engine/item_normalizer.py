"""Shared item name normalization and similarity utilities."""

import re
from difflib import SequenceMatcher

_LEADING_DESCRIPTORS = {
    "organic",
    "fresh",
    "whole",
    "large",
    "small",
}
_TRAILING_FILLER = {"pack", "packs", "count", "ct", "pkg", "pk", "bag", "bottle", "can"}
_MEASURE_TOKEN = re.compile(r"^\d+(?:\.\d+)?(?:oz|lb|lbs|g|kg|ml|l|ct)$")
_SIMPLE_NUMERIC = re.compile(r"^\d+(?:\.\d+)?%?$")


def exact_key(item_name: str) -> str:
    """Case-insensitive identity key used by exact matching."""
    return re.sub(r"\s+", " ", item_name.strip().lower())


def normalize_item_name(item_name: str) -> str:
    """Normalize item names into a canonical identity key."""
    cleaned = re.sub(r"[^a-z0-9% ]+", " ", item_name.lower())
    tokens = [token for token in cleaned.split() if token]

    while tokens and tokens[0] in _LEADING_DESCRIPTORS:
        tokens.pop(0)

    while tokens and (
        tokens[-1] in _TRAILING_FILLER
        or _MEASURE_TOKEN.match(tokens[-1])
        or _SIMPLE_NUMERIC.match(tokens[-1])
    ):
        tokens.pop()

    if not tokens:
        return exact_key(item_name)
    return " ".join(tokens)


def name_tokens(item_name: str) -> set[str]:
    """Token set of the normalized name."""
    return set(normalize_item_name(item_name).split())


def name_similarity(left: str, right: str) -> float:
    """Score two item names between 0.0 and 1.0.

    The score is the larger of the token overlap (Jaccard index of the
    normalized tokens) and the character-level SequenceMatcher ratio of the
    normalized names.
    """
    left_norm = normalize_item_name(left)
    right_norm = normalize_item_name(right)
    if left_norm == right_norm:
        return 1.0

    left_tokens = name_tokens(left)
    right_tokens = name_tokens(right)
    union = left_tokens | right_tokens
    overlap = len(left_tokens & right_tokens) / len(union) if union else 0.0

    ratio = SequenceMatcher(None, left_norm, right_norm).ratio()
    return max(overlap, ratio)

