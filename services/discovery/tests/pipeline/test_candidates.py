"""Tests for candidate field coercion."""
import pytest

from services.discovery.pipeline.candidates import (
    DEFAULT_CONFIDENCE,
    DEFAULT_PRICE_LEVEL,
    CandidatePlace,
    clamp_price_level,
    coerce_confidence,
)


class TestClampPriceLevel:
    @pytest.mark.parametrize("raw,expected", [
        (7, 4), (0, 1), (None, 2), (3, 3), ("4", 4), (2.6, 2), (-1, 1), ("cheap", 2), (True, 2),
    ])
    def test_clamp(self, raw, expected):
        assert clamp_price_level(raw) == expected

    def test_default(self):
        assert DEFAULT_PRICE_LEVEL == 2


class TestCoerceConfidence:
    @pytest.mark.parametrize("raw,expected", [
        (85, 85), (150, 100), (-5, 0), (None, DEFAULT_CONFIDENCE), ("72", 72), ("high", 50),
        (float("inf"), 50),
    ])
    def test_coerce(self, raw, expected):
        assert coerce_confidence(raw) == expected


class TestCandidatePlace:
    def test_to_dict(self):
        place = CandidatePlace(name="A", category="cafes", address="1 Main St")
        data = place.to_dict()
        assert data["name"] == "A"
        assert data["price_level"] == 2
        assert data["source"] == "llm-research"
        assert data["dog_features"] == {}
