"""
Candidate records flowing through discovery, review and import.

CandidatePlace is what the research parser produces and the validation
queue stores. ImportRecord is what the importer consumes: a candidate bound
to a city slug, plus the enrichment fields curated batch files may carry.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

DEFAULT_PRICE_LEVEL = 2
MIN_PRICE_LEVEL = 1
MAX_PRICE_LEVEL = 4
DEFAULT_CONFIDENCE = 50
DISCOVERY_SOURCE = "llm-research"
BATCH_FILE_SOURCE = "research"


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def clamp_price_level(value: Any) -> int:
    """Clamp to [1, 4]; missing or unparseable input -> default 2."""
    level = _to_int(value)
    if level is None:
        return DEFAULT_PRICE_LEVEL
    return max(MIN_PRICE_LEVEL, min(MAX_PRICE_LEVEL, level))


def coerce_confidence(value: Any) -> int:
    """Clamp to [0, 100]; missing or unparseable input -> 50."""
    confidence = _to_int(value)
    if confidence is None:
        return DEFAULT_CONFIDENCE
    return max(0, min(100, confidence))


@dataclass
class CandidatePlace:
    """A dog-friendly establishment proposed by discovery, not yet in the store."""
    name: str
    category: str
    address: str
    description: str = ""
    localized_name: Optional[str] = None
    localized_description: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    neighborhood: Optional[str] = None
    dog_features: dict[str, bool] = field(default_factory=dict)
    price_level: int = DEFAULT_PRICE_LEVEL
    confidence: int = DEFAULT_CONFIDENCE
    reasoning: str = ""
    source: str = DISCOVERY_SOURCE
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ImportRecord:
    """A candidate bound to a city, ready for the establishment importer."""
    city_slug: str
    place: CandidatePlace
    google_place_id: Optional[str] = None
    google_maps_url: Optional[str] = None
    photo_refs: list[str] = field(default_factory=list)
    opening_hours: list[str] = field(default_factory=list)
    rating: float = 0.0
    review_count: int = 0
    queue_item_id: Optional[str] = None
