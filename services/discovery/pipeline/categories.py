"""
Category resolution for discovered and imported establishments.

Maps free-text category labels (LLM output, curated batch files) onto the
fixed set of category slugs seeded in the `categories` table. Resolution
never fails: unknown labels land in FALLBACK_CATEGORY so no candidate is
dropped for an unrecognised label. Callers use is_known_category() to
record unmapped labels for alias-table maintenance.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

FALLBACK_CATEGORY = "activities"


@dataclass(frozen=True)
class CategoryInfo:
    slug: str
    name: str
    name_fr: str


CATEGORIES: tuple[CategoryInfo, ...] = (
    CategoryInfo("parks", "Dog Parks", "Parcs"),
    CategoryInfo("restaurants", "Restaurants", "Restaurants"),
    CategoryInfo("cafes", "Cafes", "Cafés"),
    CategoryInfo("hotels", "Hotels", "Hôtels"),
    CategoryInfo("beaches", "Beaches", "Plages"),
    CategoryInfo("vets", "Veterinarians", "Vétérinaires"),
    CategoryInfo("groomers", "Groomers", "Toiletteurs"),
    CategoryInfo("shops", "Pet Shops", "Animaleries"),
    CategoryInfo("activities", "Activities", "Activités"),
)

CANONICAL_CATEGORIES: frozenset[str] = frozenset(c.slug for c in CATEGORIES)

# Lower-cased label -> canonical slug. Canonical slugs map to themselves.
_ALIASES: dict[str, str] = {c.slug: c.slug for c in CATEGORIES}
_ALIASES.update({
    # Singular / alternate names
    "restaurant": "restaurants",
    "cafe": "cafes",
    "café": "cafes",
    "cafés": "cafes",
    "coffee": "cafes",
    "coffee shop": "cafes",
    "hotel": "hotels",
    "park": "parks",
    "dog park": "parks",
    "dog_park": "parks",
    "dog-park": "parks",
    "dog parks": "parks",
    "beach": "beaches",
    "vet": "vets",
    "veterinarian": "vets",
    "veterinarians": "vets",
    "veterinary": "vets",
    "groomer": "groomers",
    "grooming": "groomers",
    "shop": "shops",
    "pet shop": "shops",
    "pet_shop": "shops",
    "pet shops": "shops",
    "pet store": "shops",
    "pet_store": "shops",
    "shopping": "shops",
    "activity": "activities",
    "activitie": "activities",
    # UK-specific
    "pubs": "restaurants",
    "pub": "restaurants",
    "pub/restaurant": "restaurants",
    "bar": "restaurants",
    "bars": "restaurants",
    # Compound names seen in curated data
    "cafe/brunch": "cafes",
    "dog cafe": "cafes",
    "regular cafe": "cafes",
    "dog beach/park": "parks",
    "dog beach": "beaches",
    # French
    "parc": "parks",
    "parcs": "parks",
    "plage": "beaches",
    "plages": "beaches",
    "hôtel": "hotels",
    "hôtels": "hotels",
    "vétérinaire": "vets",
    "vétérinaires": "vets",
    "toiletteur": "groomers",
    "toiletteurs": "groomers",
    "animalerie": "shops",
    "animaleries": "shops",
    "activités": "activities",
})

CATEGORY_ALIASES: Mapping[str, str] = MappingProxyType(_ALIASES)

_BY_SLUG: Mapping[str, CategoryInfo] = MappingProxyType({c.slug: c for c in CATEGORIES})


def _normalise_label(raw_label: Any) -> str:
    if not isinstance(raw_label, str):
        return ""
    return raw_label.strip().lower()


def resolve_category(
    raw_label: Any,
    aliases: Mapping[str, str] = CATEGORY_ALIASES,
) -> str:
    """Resolve a raw category label to a canonical slug. Never raises."""
    slug = aliases.get(_normalise_label(raw_label), FALLBACK_CATEGORY)
    if slug not in CANONICAL_CATEGORIES:
        return FALLBACK_CATEGORY
    return slug


def is_known_category(
    raw_label: Any,
    aliases: Mapping[str, str] = CATEGORY_ALIASES,
) -> bool:
    """True when the label has an explicit alias entry."""
    return aliases.get(_normalise_label(raw_label)) in CANONICAL_CATEGORIES


def get_category(slug: str) -> CategoryInfo:
    return _BY_SLUG.get(slug) or _BY_SLUG[FALLBACK_CATEGORY]


def describe_category(label: str) -> str:
    """Prompt-friendly line for a category label, e.g. 'Cafes (Cafés)'."""
    info = _BY_SLUG.get(_normalise_label(label))
    if info is None:
        return label
    return f"{info.name} ({info.name_fr})"
