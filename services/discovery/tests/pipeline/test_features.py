"""Tests for dog feature normalisation."""
from services.discovery.pipeline.features import normalize_dog_features


class TestNormalizeDogFeatures:
    def test_mapping_values_coerced(self):
        assert normalize_dog_features({"waterBowl": 1, "treats": 0, "fenced": "yes"}) == {
            "waterBowl": True, "treats": False, "fenced": True}

    def test_list_of_names(self):
        assert normalize_dog_features(["waterBowl", "outdoorSeating"]) == {
            "waterBowl": True, "outdoorSeating": True}

    def test_list_ignores_non_strings(self):
        assert normalize_dog_features(["treats", 3, None, ""]) == {"treats": True}

    def test_unknown_keys_pass_through(self):
        assert normalize_dog_features({"agilityCourse": True}) == {"agilityCourse": True}

    def test_other_shapes_empty(self):
        for raw in (None, "waterBowl", 5, True):
            assert normalize_dog_features(raw) == {}
