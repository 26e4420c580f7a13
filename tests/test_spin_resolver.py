"""Tests for SKU -> segment index resolution."""

import logging
import random
from collections import Counter

import pytest

from segment_store import default_segments
from spin_resolver import match_index, resolve


@pytest.fixture
def segments():
    return default_segments()


class FixedRandom:
    def __init__(self, value):
        self.value = value
        self.calls = []

    def randrange(self, stop):
        self.calls.append(stop)
        return self.value


@pytest.mark.parametrize("code,expected", [
    ("SKU_A", 0),
    ("sku_c", 2),
    ("Sku_F", 5),
])
def test_matching_code_returns_its_index(segments, code, expected):
    assert resolve(code, segments, FixedRandom(4)) == expected


def test_match_does_not_consume_randomness(segments):
    rng = FixedRandom(0)
    resolve("SKU_D", segments, rng)
    assert rng.calls == []


def test_duplicate_ids_resolve_to_first_match():
    segments = [
        {"id": "X", "text": "first", "color": "red"},
        {"id": "dup", "text": "second", "color": "red"},
        {"id": "DUP", "text": "third", "color": "red"},
    ]
    assert resolve("Dup", segments) == 1


def test_non_string_ids_are_compared_as_text():
    segments = [{"id": 7, "text": "seven", "color": "red"}, {"id": "8", "text": "eight", "color": "red"}]
    assert match_index("7", segments) == 0
    assert match_index(8, segments) == 1


@pytest.mark.parametrize("code", [None, "", "SKU_Z"])
def test_unmatched_code_falls_back_to_random(segments, code):
    rng = FixedRandom(3)
    assert resolve(code, segments, rng) == 3
    assert rng.calls == [len(segments)]


def test_fallback_is_logged(segments, caplog):
    with caplog.at_level(logging.INFO, logger="spin_resolver"):
        resolve("SKU_Z", segments, FixedRandom(1))
    assert "not found" in caplog.text


def test_random_fallback_is_reproducible_with_seed(segments):
    first = [resolve(None, segments, random.Random(99)) for _ in range(5)]
    second = [resolve(None, segments, random.Random(99)) for _ in range(5)]
    assert first == second


def test_random_fallback_is_uniform(segments):
    rng = random.Random(2024)
    trials = 6000
    counts = Counter(resolve("nope", segments, rng) for _ in range(trials))

    assert set(counts) == set(range(len(segments)))
    expected = trials / len(segments)
    for index in range(len(segments)):
        assert abs(counts[index] - expected) < 150


def test_empty_segments_is_rejected():
    with pytest.raises(ValueError):
        resolve("SKU_A", [])
