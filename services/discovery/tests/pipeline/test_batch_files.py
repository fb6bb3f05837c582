"""Tests for curated batch file loading."""
import json

import pytest

from services.discovery.pipeline.batch_files import (
    FILE_TO_CITY_SLUG,
    BatchFileError,
    city_slug_for_file,
    default_batch_paths,
    load_batch_file,
    load_batch_files,
    parse_batch_document,
)

PLACE = {
    "name": "Hampstead Heath",
    "category": "park",
    "address": "Hampstead, London NW3",
    "neighborhood": "Hampstead",
    "dogFeatures": ["offLeashArea"],
    "priceLevel": 1,
    "confidence": 95,
    "rating": 4.8,
    "reviewCount": "1520",
    "googlePlaceId": "ChIJ123",
    "googleMapsUrl": "https://maps.google.com/?cid=1",
    "photoRefs": ["ref-a", "ref-b"],
    "openingHours": None,
    "enriched": True,
}


def _write(tmp_path, name, doc):
    path = tmp_path / name
    path.write_text(json.dumps(doc) if not isinstance(doc, str) else doc, encoding="utf-8")
    return path


class TestCitySlugForFile:
    def test_mapped_prefixes(self):
        assert city_slug_for_file("nyc-places.json") == "newyork"
        assert city_slug_for_file("/data/los-angeles-places.json") == "losangeles"

    def test_unmapped_prefix_passes_through(self):
        assert city_slug_for_file("lisbon-places.json") == "lisbon"

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            FILE_TO_CITY_SLUG["rome"] = "rome"


class TestParseBatchDocument:
    def test_enrichment_fields(self, tmp_path):
        batch = parse_batch_document({"places": [PLACE]}, path=tmp_path / "london-places.json")
        assert batch.city_slug == "london"
        record = batch.records[0]
        assert record.city_slug == "london"
        assert record.place.source == "research"
        assert record.place.dog_features == {"offLeashArea": True}
        assert record.rating == 4.8
        assert record.review_count == 1520
        assert record.google_place_id == "ChIJ123"
        assert record.photo_refs == ["ref-a", "ref-b"]
        assert record.opening_hours == []

    def test_document_city_wins_over_file_name(self, tmp_path):
        batch = parse_batch_document({"city": "Paris", "places": []}, path=tmp_path / "nyc-places.json")
        assert batch.city_slug == "paris"

    def test_drops_places_without_address(self, tmp_path):
        doc = {"places": [PLACE, {"name": "Nowhere"}]}
        batch = parse_batch_document(doc, path=tmp_path / "london-places.json")
        assert len(batch.records) == 1
        assert batch.dropped == 1

    def test_non_object(self, tmp_path):
        with pytest.raises(BatchFileError):
            parse_batch_document([PLACE], path=tmp_path / "london-places.json")

    def test_places_not_a_list(self, tmp_path):
        with pytest.raises(BatchFileError, match="places"):
            parse_batch_document({"places": {"a": 1}}, path=tmp_path / "london-places.json")


class TestLoadBatchFiles:
    def test_invalid_json_raises(self, tmp_path):
        path = _write(tmp_path, "paris-places.json", "{not json")
        with pytest.raises(BatchFileError, match="invalid JSON"):
            load_batch_file(path)

    def test_missing_and_malformed_files_skipped(self, tmp_path):
        good = _write(tmp_path, "london-places.json", {"places": [PLACE]})
        bad = _write(tmp_path, "paris-places.json", "[1, 2")
        batches = load_batch_files([tmp_path / "tokyo-places.json", bad, good])
        assert [b.city_slug for b in batches] == ["london"]

    def test_default_paths(self, tmp_path):
        paths = default_batch_paths(tmp_path)
        assert len(paths) == 8
        assert paths[4].name == "nyc-places.json"
