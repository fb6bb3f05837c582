"""
Tolerant parsing of discovery responses into CandidatePlace records.

Model output may be a clean JSON array, an array wrapped in a markdown
fence, or an array surrounded by commentary. Extraction runs in stages:

  1. strip_code_fence       -- keep the interior of the first ``` fence
  2. locate_json_array      -- first balanced [...] literal
  3. decode_candidate_array -- json.loads, None unless the result is a list
  4. coerce_candidate       -- per-field defaults, None for unusable items

A payload that cannot be found or decoded yields [] -- a parse failure
means "zero candidates", never an exception.
"""

import json
import logging
import re
from typing import Any, Optional

from services.discovery.pipeline.candidates import (
    DISCOVERY_SOURCE,
    CandidatePlace,
    clamp_price_level,
    coerce_confidence,
)
from services.discovery.pipeline.features import normalize_dog_features

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?(.*?)```", re.DOTALL)


# ---------------------------------------------------------------------------
# Extraction stages
# ---------------------------------------------------------------------------

def strip_code_fence(text: str) -> str:
    """Return the interior of the first fenced block, or the text unchanged."""
    match = _FENCE.search(text)
    if match:
        return match.group(1)
    return text


def locate_json_array(text: str) -> Optional[str]:
    """
    Return the first balanced JSON array literal in text, or None.

    Brackets inside JSON strings (including escaped quotes) do not count
    toward depth, so a "[closed]" note inside a description is harmless.
    """
    start = text.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return text[start:idx + 1]
    return None


def decode_candidate_array(text: str) -> Optional[list]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, list):
        return None
    return data


# ---------------------------------------------------------------------------
# Per-field coercion
# ---------------------------------------------------------------------------

def _first(raw: dict, *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _as_optional_str(value: Any) -> Optional[str]:
    return _as_str(value) or None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coerce_candidate(raw: Any, *, source: str = DISCOVERY_SOURCE) -> Optional[CandidatePlace]:
    """Coerce one decoded element. Returns None when name or address is empty."""
    if not isinstance(raw, dict):
        return None

    name = _as_str(raw.get("name"))
    address = _as_str(raw.get("address"))
    if not name or not address:
        return None

    return CandidatePlace(
        name=name,
        category=_as_str(raw.get("category")),
        address=address,
        description=_as_str(raw.get("description")),
        localized_name=_as_optional_str(_first(raw, "nameFr", "nameLocal", "localizedName", "localized_name")),
        localized_description=_as_optional_str(
            _first(raw, "descriptionFr", "localizedDescription", "localized_description")),
        phone=_as_optional_str(raw.get("phone")),
        website=_as_optional_str(raw.get("website")),
        neighborhood=_as_optional_str(raw.get("neighborhood")),
        dog_features=normalize_dog_features(_first(raw, "dogFeatures", "dog_features")),
        price_level=clamp_price_level(_first(raw, "priceLevel", "price_level")),
        confidence=coerce_confidence(raw.get("confidence")),
        reasoning=_as_str(raw.get("reasoning")),
        source=source,
        latitude=_as_float(raw.get("latitude")),
        longitude=_as_float(raw.get("longitude")),
    )


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def parse_discovery_response(raw_text: str, *, source: str = DISCOVERY_SOURCE) -> list[CandidatePlace]:
    """Parse provider text into validated candidates. Returns [] on any parse failure."""
    if not raw_text or not isinstance(raw_text, str):
        return []

    body = strip_code_fence(raw_text)
    array_text = locate_json_array(body)
    if array_text is None:
        logger.warning("No JSON array found in discovery response: %s", raw_text[:200])
        return []

    items = decode_candidate_array(array_text)
    if items is None:
        logger.warning("Discovery response array did not decode: %s", array_text[:200])
        return []

    candidates: list[CandidatePlace] = []
    for item in items:
        candidate = coerce_candidate(item, source=source)
        if candidate is None:
            logger.debug("Dropped unusable candidate: %r", item if not isinstance(item, dict) else item.get("name"))
            continue
        candidates.append(candidate)

    dropped = len(items) - len(candidates)
    if dropped:
        logger.info("Parsed %d candidates (%d dropped)", len(candidates), dropped)
    return candidates
