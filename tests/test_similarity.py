"""Tests for the edit-distance helpers."""
from __future__ import annotations

import pytest

from tapreader.similarity import bounded_levenshtein, levenshtein, similarity


def test_levenshtein_known_values() -> None:
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0
    assert levenshtein("今日は", "今日も") == 1


def test_bounded_levenshtein_agrees_within_limit() -> None:
    pairs = [("kitten", "sitting"), ("flaw", "lawn"), ("Hello, wrld!", "Hello, world!"), ("abc", "")]
    for a, b in pairs:
        exact = levenshtein(a, b)
        assert bounded_levenshtein(a, b, exact) == exact
        assert bounded_levenshtein(a, b, exact + 5) == exact


def test_bounded_levenshtein_stops_past_limit() -> None:
    assert bounded_levenshtein("kitten", "sitting", 2) == 3
    assert bounded_levenshtein("short", "a much longer string", 3) == 4


def test_similarity_ratio() -> None:
    assert similarity("", "") == 1.0
    assert similarity("abcdefghij", "abcdefghXY") == 0.8
    assert similarity("Hello, wrld!", "Hello, world!") == 12 / 13


@pytest.mark.parametrize("limit", [-1, -3])
def test_negative_limit_is_over_the_limit(limit) -> None:
    assert bounded_levenshtein("same", "same", limit) == limit + 1
    assert bounded_levenshtein("same", "same", limit) > limit


def test_cutoff_keeps_distances_within_limit() -> None:
    assert bounded_levenshtein("Hello, wrld!", "Hello, world!", 2) == 1
    assert bounded_levenshtein("abcdefghij", "abcdefghXY", 1) == 2
