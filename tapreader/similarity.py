"""Edit-distance helpers for fuzzy sentence-key matching, backed by rapidfuzz."""

from rapidfuzz.distance import Levenshtein

__all__ = ['levenshtein', 'bounded_levenshtein', 'similarity']


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def bounded_levenshtein(a: str, b: str, max_distance: int) -> int:
    """
    Levenshtein distance, or max_distance + 1 once it is known to exceed it.

    A negative limit can never be met, so it also gives max_distance + 1.
    """
    if max_distance < 0:
        return max_distance + 1
    return Levenshtein.distance(a, b, score_cutoff=max_distance)


def similarity(a: str, b: str, distance: int | None = None) -> float:
    """(longer - edit distance) / longer; 1.0 for two empty strings."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    if distance is None:
        distance = levenshtein(a, b)
    return (longer - distance) / longer
