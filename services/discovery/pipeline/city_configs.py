"""
City registry for discovery runs and batch imports.

Each city defines:
  - name (English + French), slug, country, currency, timezone
  - spoken languages used for localized descriptions
  - centre coordinates
  - dog regulations (leash rules, off-leash areas, public transport)

The registry is immutable and loaded once at import time. Slugs must match
the `cities` table seeded by the web app's SQL migration.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


class UnknownCityError(KeyError):
    """Raised when a city slug is not in the registry."""


@dataclass(frozen=True)
class DogRegulations:
    leash_required: bool
    off_leash_areas: bool
    public_transport: str


@dataclass(frozen=True)
class CityConfig:
    """Static configuration for a supported city."""
    slug: str
    name: str
    name_fr: str
    country: str
    country_code: str
    timezone: str
    currency: str
    latitude: float
    longitude: float
    regulations: DogRegulations
    languages: tuple[str, ...] = field(default=("en", "fr"))


_CITIES: dict[str, CityConfig] = {
    "geneva": CityConfig(
        slug="geneva", name="Geneva", name_fr="Genève",
        country="Switzerland", country_code="CH",
        timezone="Europe/Zurich", currency="CHF",
        latitude=46.2044, longitude=6.1432,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=True,
            public_transport="Small dogs in carriers travel free. Larger dogs need a reduced-fare ticket.",
        ),
    ),
    "paris": CityConfig(
        slug="paris", name="Paris", name_fr="Paris",
        country="France", country_code="FR",
        timezone="Europe/Paris", currency="EUR",
        latitude=48.8566, longitude=2.3522,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=True,
            public_transport="Dogs under 6kg travel free in a carrier. Larger dogs pay half-fare and must be muzzled.",
        ),
    ),
    "london": CityConfig(
        slug="london", name="London", name_fr="Londres",
        country="United Kingdom", country_code="GB",
        timezone="Europe/London", currency="GBP",
        latitude=51.5074, longitude=-0.1278,
        regulations=DogRegulations(
            leash_required=False, off_leash_areas=True,
            public_transport="Dogs travel free on buses, Tube, Overground. Must be on a lead or in a carrier.",
        ),
    ),
    "losangeles": CityConfig(
        slug="losangeles", name="Los Angeles", name_fr="Los Angeles",
        country="United States", country_code="US",
        timezone="America/Los_Angeles", currency="USD",
        latitude=34.0522, longitude=-118.2437,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=True,
            public_transport="Small dogs in carriers allowed on Metro. Service animals always welcome.",
        ),
    ),
    "newyork": CityConfig(
        slug="newyork", name="New York City", name_fr="New York",
        country="United States", country_code="US",
        timezone="America/New_York", currency="USD",
        latitude=40.7128, longitude=-74.0060,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=True,
            public_transport="Dogs in carriers allowed on subway, buses, and commuter rail.",
        ),
    ),
    "barcelona": CityConfig(
        slug="barcelona", name="Barcelona", name_fr="Barcelone",
        country="Spain", country_code="ES",
        timezone="Europe/Madrid", currency="EUR",
        latitude=41.3874, longitude=2.1686,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=True,
            public_transport="Dogs allowed on Metro and buses during off-peak hours. Must be muzzled.",
        ),
    ),
    "sydney": CityConfig(
        slug="sydney", name="Sydney", name_fr="Sydney",
        country="Australia", country_code="AU",
        timezone="Australia/Sydney", currency="AUD",
        latitude=-33.8688, longitude=151.2093,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=True,
            public_transport="Dogs generally not allowed on public transport except assistance animals.",
        ),
    ),
    "tokyo": CityConfig(
        slug="tokyo", name="Tokyo", name_fr="Tokyo",
        country="Japan", country_code="JP",
        timezone="Asia/Tokyo", currency="JPY",
        latitude=35.6762, longitude=139.6503,
        regulations=DogRegulations(
            leash_required=True, off_leash_areas=False,
            public_transport="Small dogs in carriers (under 10kg) allowed on trains and buses.",
        ),
    ),
}

CITY_CONFIGS: Mapping[str, CityConfig] = MappingProxyType(_CITIES)


def get_city_config(slug: str) -> CityConfig:
    """Get city config by slug. Raises UnknownCityError if not found."""
    if slug not in CITY_CONFIGS:
        available = ", ".join(sorted(CITY_CONFIGS.keys()))
        raise UnknownCityError(f"Unknown city slug: {slug!r}. Available: {available}")
    return CITY_CONFIGS[slug]
