"""
Curated research batch files: JSON documents of places for one city.

    {"city": "paris", "places": [{"name": ..., "category": ..., ...}, ...]}

The city comes from the document's "city" key when present, else from the
file name (<prefix>-places.json) through FILE_TO_CITY_SLUG, else the prefix
itself. Places go through the same per-field coercion as discovery output;
a place without a name or address is dropped and counted.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from services.discovery.pipeline.candidates import BATCH_FILE_SOURCE, ImportRecord
from services.discovery.pipeline.research_parser import coerce_candidate

logger = logging.getLogger(__name__)

CITY_FILE_SUFFIX = "-places.json"

DEFAULT_CITY_FILES = (
    "geneva-places.json",
    "paris-places.json",
    "london-places.json",
    "los-angeles-places.json",
    "nyc-places.json",
    "barcelona-places.json",
    "sydney-places.json",
    "tokyo-places.json",
)

FILE_TO_CITY_SLUG: Mapping[str, str] = MappingProxyType({
    "geneva": "geneva",
    "paris": "paris",
    "london": "london",
    "los-angeles": "losangeles",
    "nyc": "newyork",
    "barcelona": "barcelona",
    "sydney": "sydney",
    "tokyo": "tokyo",
})


class BatchFileError(ValueError):
    """A batch file exists but is not a usable document."""


@dataclass
class BatchFile:
    path: Path
    city_slug: str
    records: list[ImportRecord] = field(default_factory=list)
    dropped: int = 0


def city_slug_for_file(path: Path) -> str:
    name = Path(path).name
    prefix = name[:-len(CITY_FILE_SUFFIX)] if name.endswith(CITY_FILE_SUFFIX) else Path(name).stem
    return FILE_TO_CITY_SLUG.get(prefix, prefix)


def default_batch_paths(data_dir: Path) -> list[Path]:
    return [Path(data_dir) / name for name in DEFAULT_CITY_FILES]


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None]


def _number(value: Any, cast, default):
    if value is None or isinstance(value, bool):
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def record_from_place(raw: Any, city_slug: str) -> Optional[ImportRecord]:
    place = coerce_candidate(raw, source=BATCH_FILE_SOURCE)
    if place is None:
        return None
    return ImportRecord(
        city_slug=city_slug,
        place=place,
        google_place_id=raw.get("googlePlaceId") or None,
        google_maps_url=raw.get("googleMapsUrl") or None,
        photo_refs=_string_list(raw.get("photoRefs")),
        opening_hours=_string_list(raw.get("openingHours")),
        rating=_number(raw.get("rating"), float, 0.0),
        review_count=_number(raw.get("reviewCount"), int, 0),
    )


def parse_batch_document(doc: Any, *, path: Path) -> BatchFile:
    if not isinstance(doc, dict):
        raise BatchFileError(f"{path}: expected a JSON object, got {type(doc).__name__}")
    places = doc.get("places", [])
    if not isinstance(places, list):
        raise BatchFileError(f"{path}: 'places' must be a list")

    city = doc.get("city")
    city_slug = city.strip().lower() if isinstance(city, str) and city.strip() else city_slug_for_file(path)

    batch = BatchFile(path=Path(path), city_slug=city_slug)
    for raw in places:
        record = record_from_place(raw, city_slug)
        if record is None:
            batch.dropped += 1
            continue
        batch.records.append(record)

    if batch.dropped:
        logger.warning("%s: dropped %d places without name or address", path, batch.dropped)
    return batch


def load_batch_file(path: Path) -> BatchFile:
    """Read and parse one batch file. Raises BatchFileError for malformed content."""
    path = Path(path)
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise BatchFileError(f"{path}: invalid JSON ({exc})") from exc
    return parse_batch_document(doc, path=path)


def load_batch_files(paths: Iterable[Path]) -> list[BatchFile]:
    """Load every readable file. Missing and malformed files are logged and skipped."""
    loaded = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            logger.warning("File not found: %s, skipping", path)
            continue
        try:
            batch = load_batch_file(path)
        except BatchFileError as exc:
            logger.error("Skipping %s", exc)
            continue
        logger.info("Loaded %s: %d places for %s", path.name, len(batch.records), batch.city_slug)
        loaded.append(batch)
    return loaded
