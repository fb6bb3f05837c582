"""Dog amenity normalisation: any accepted shape -> flat {feature: bool} map."""

from collections.abc import Mapping
from typing import Any


def normalize_dog_features(raw: Any) -> dict[str, bool]:
    """
    Coerce a dog-feature payload into one canonical boolean map.

    Accepts a flat mapping (values coerced to bool) or a list of feature
    names (each present becomes True). Anything else yields {}. Feature
    names are not validated; unknown keys pass through.
    """
    if isinstance(raw, Mapping):
        return {str(key): bool(value) for key, value in raw.items()}

    if isinstance(raw, (list, tuple)):
        return {item: True for item in raw if isinstance(item, str) and item}

    return {}
