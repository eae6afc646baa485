"""Title similarity scoring."""

from __future__ import annotations

from rapidfuzz.distance import JaroWinkler

# Standard Winkler boost; rapidfuzz caps the common prefix at 4 characters
PREFIX_WEIGHT = 0.1


def score(a: str, b: str) -> float:
    """Case-insensitive Jaro-Winkler similarity in [0.0, 1.0].

    Two empty strings are identical (1.0); one empty string scores 0.0.
    The result is symmetric: score(a, b) == score(b, a).
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0

    similarity = JaroWinkler.similarity(a.casefold(), b.casefold(), prefix_weight=PREFIX_WEIGHT)
    return min(1.0, max(0.0, similarity))
