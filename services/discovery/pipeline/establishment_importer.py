"""
Establishment importer: turns approved/curated records into establishment rows.

Per record:
  city slug -> city id          (missing -> skipped)
  raw category -> canonical     (fallback 'activities', label recorded)
  canonical -> category id      (missing -> skipped, label recorded)
  name (+neighborhood) -> slug  (stored rows keep their slug; unique per city)

Rows are grouped per city in source order and written in fixed-size
batches. Each batch is an independent upsert on (city_id, slug); a failed
or timed-out batch counts its rows as errored and the run continues.
Re-running the same input updates the same rows: no duplicates, and the
publication fields (status, tier, is_verified, is_featured) of existing
rows are left alone.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol

from services.discovery.config import settings
from services.discovery.pipeline.candidates import ImportRecord, clamp_price_level
from services.discovery.pipeline.categories import (
    CATEGORY_ALIASES,
    is_known_category,
    resolve_category,
)
from services.discovery.pipeline.features import normalize_dog_features
from services.discovery.pipeline.slugs import SlugAllocator, establishment_key

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 500
SAMPLE_SIZE = 3

DEFAULT_STATUS = "ACTIVE"
DEFAULT_TIER = "free"

ROW_COLUMNS = (
    "slug", "city_id", "category_id", "name", "name_fr", "description", "description_fr",
    "address", "neighborhood", "latitude", "longitude", "phone", "website",
    "rating", "review_count", "price_level", "photo_refs", "google_place_id",
    "google_maps_url", "opening_hours", "dog_features",
    "status", "tier", "is_verified", "is_featured", "source", "confidence",
)

# Set on insert only; an update never touches what editors have published.
_INSERT_ONLY_COLUMNS = frozenset({"status", "tier", "is_verified", "is_featured"})


class ImportSetupError(Exception):
    """Store unreachable or reference tables empty. Aborts the run."""


@dataclass
class ImportSummary:
    inserted: int = 0
    skipped: int = 0
    errored: int = 0
    batches_failed: int = 0
    would_write: int = 0
    unmapped_categories: set[str] = field(default_factory=set)
    sample: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class EstablishmentStore(Protocol):
    async def fetch_city_ids(self) -> dict[str, str]:
        ...

    async def fetch_category_ids(self) -> dict[str, str]:
        ...

    async def fetch_existing_slugs(self, city_id: str) -> dict[str, str]:
        """Stored slugs for one city, mapped to their establishment_key."""
        ...

    async def upsert_establishments(self, rows: list[dict]) -> int:
        ...


def _build_upsert_sql() -> str:
    placeholders = ", ".join(
        f"${i}::jsonb" if col == "dog_features" else f"${i}"
        for i, col in enumerate(ROW_COLUMNS, start=1)
    )
    updates = ", ".join(
        f"{col} = EXCLUDED.{col}"
        for col in ROW_COLUMNS
        if col not in _INSERT_ONLY_COLUMNS and col not in ("city_id", "slug")
    )
    return (
        f"INSERT INTO establishments ({', '.join(ROW_COLUMNS)}, created_at, updated_at) "
        f"VALUES ({placeholders}, NOW(), NOW()) "
        f"ON CONFLICT (city_id, slug) DO UPDATE SET {updates}, updated_at = NOW()"
    )


UPSERT_SQL = _build_upsert_sql()


class PostgresEstablishmentStore:
    """EstablishmentStore on an asyncpg pool. One transaction per batch."""

    def __init__(self, pool):
        self.pool = pool

    async def fetch_city_ids(self) -> dict[str, str]:
        rows = await self.pool.fetch("SELECT id, slug FROM cities")
        return {r["slug"]: str(r["id"]) for r in rows}

    async def fetch_category_ids(self) -> dict[str, str]:
        rows = await self.pool.fetch("SELECT id, slug FROM categories")
        return {r["slug"]: str(r["id"]) for r in rows}

    async def fetch_existing_slugs(self, city_id: str) -> dict[str, str]:
        rows = await self.pool.fetch(
            "SELECT slug, name, address FROM establishments WHERE city_id = $1", city_id)
        return {r["slug"]: establishment_key(r["name"], r["address"]) for r in rows}

    async def upsert_establishments(self, rows: list[dict]) -> int:
        if not rows:
            return 0
        args = [
            tuple(json.dumps(row[col]) if col == "dog_features" else row[col] for col in ROW_COLUMNS)
            for row in rows
        ]
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(UPSERT_SQL, args)
        return len(rows)


async def load_lookups(store: EstablishmentStore) -> tuple[dict[str, str], dict[str, str]]:
    """Fetch city and category id maps. Raises ImportSetupError when either is unusable."""
    try:
        city_ids = await store.fetch_city_ids()
        category_ids = await store.fetch_category_ids()
    except (OSError, asyncio.TimeoutError) as exc:
        raise ImportSetupError(f"Store unreachable: {exc}") from exc
    if not city_ids:
        raise ImportSetupError("No cities found. Has the schema migration been run?")
    if not category_ids:
        raise ImportSetupError("No categories found. Has the schema migration been run?")
    logger.info("Loaded %d cities, %d categories", len(city_ids), len(category_ids))
    return city_ids, category_ids


# ---------------------------------------------------------------------------
# Row building
# ---------------------------------------------------------------------------

def build_establishment_row(record: ImportRecord, *, slug: str, city_id: str, category_id: str) -> dict[str, Any]:
    place = record.place
    return {
        "slug": slug,
        "city_id": city_id,
        "category_id": category_id,
        "name": place.name,
        "name_fr": place.localized_name or None,
        "description": place.description or None,
        "description_fr": place.localized_description or None,
        "address": place.address,
        "neighborhood": place.neighborhood or None,
        "latitude": place.latitude,
        "longitude": place.longitude,
        "phone": place.phone or None,
        "website": place.website or None,
        "rating": record.rating or 0.0,
        "review_count": record.review_count or 0,
        "price_level": clamp_price_level(place.price_level),
        "photo_refs": list(record.photo_refs),
        "google_place_id": record.google_place_id,
        "google_maps_url": record.google_maps_url,
        "opening_hours": list(record.opening_hours),
        "dog_features": normalize_dog_features(place.dog_features),
        "status": DEFAULT_STATUS,
        "tier": DEFAULT_TIER,
        "is_verified": False,
        "is_featured": False,
        "source": place.source,
        "confidence": place.confidence,
    }


def _chunks(rows: list[dict], size: int) -> Iterable[list[dict]]:
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


def _rows_for_city(
    city_slug: str,
    city_id: str,
    records: list[ImportRecord],
    category_lookup: Mapping[str, str],
    aliases: Mapping[str, str],
    summary: ImportSummary,
    existing_slugs: Optional[Mapping[str, str]] = None,
) -> list[dict]:
    resolved: list[tuple[ImportRecord, str]] = []
    for record in records:
        raw_label = record.place.category
        category_slug = resolve_category(raw_label, aliases)
        if not is_known_category(raw_label, aliases):
            summary.unmapped_categories.add(str(raw_label))
            logger.warning("Unmapped category %r for %r, using %r",
                           raw_label, record.place.name, category_slug)

        category_id = category_lookup.get(category_slug)
        if category_id is None:
            summary.unmapped_categories.add(str(raw_label))
            summary.skipped += 1
            logger.warning("No category id for %r (from %r) on %r, skipping",
                           category_slug, raw_label, record.place.name)
            continue
        resolved.append((record, category_id))

    allocator = SlugAllocator(existing_slugs)
    rows = []
    for record, category_id in resolved:
        slug = allocator.allocate(record.place.name, record.place.neighborhood, record.place.address)
        rows.append(build_establishment_row(record, slug=slug, city_id=city_id, category_id=category_id))

    if allocator.collisions:
        logger.info("%s: %d slug collisions resolved with counters", city_slug, allocator.collisions)
    return rows


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

async def import_batch(
    records: Iterable[ImportRecord],
    city_lookup: Mapping[str, str],
    category_lookup: Mapping[str, str],
    *,
    store: Optional[EstablishmentStore],
    dry_run: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    timeout_s: Optional[float] = None,
    aliases: Mapping[str, str] = CATEGORY_ALIASES,
) -> ImportSummary:
    """
    Import records into the establishment store.

    Per-record problems are counted in the summary, never raised. With
    dry_run=True every resolution step runs (stored slugs are still read
    when a store is given) but nothing is written.
    """
    if not dry_run and store is None:
        raise ImportSetupError("A store is required unless dry_run is set")
    batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
    timeout_s = timeout_s or settings.store_timeout_s
    summary = ImportSummary()

    by_city: dict[str, list[ImportRecord]] = {}
    for record in records:
        if record.city_slug not in city_lookup:
            summary.skipped += 1
            logger.warning("No city id for %r, skipping %r", record.city_slug, record.place.name)
            continue
        by_city.setdefault(record.city_slug, []).append(record)

    for city_slug, city_records in by_city.items():
        city_id = city_lookup[city_slug]
        existing_slugs: dict[str, str] = {}
        if store is not None:
            try:
                existing_slugs = await asyncio.wait_for(store.fetch_existing_slugs(city_id), timeout=timeout_s)
            except Exception as e:
                summary.errored += len(city_records)
                logger.error("%s: could not read stored slugs, skipping city (%d records): %s",
                             city_slug, len(city_records), e)
                continue

        rows = _rows_for_city(
            city_slug, city_id, city_records, category_lookup, aliases, summary, existing_slugs)
        if not rows:
            continue

        if dry_run:
            summary.would_write += len(rows)
            summary.sample.extend(rows[:SAMPLE_SIZE])
            logger.info("%s: would insert/update %d establishments", city_slug, len(rows))
            continue

        for batch_no, batch in enumerate(_chunks(rows, batch_size), start=1):
            try:
                written = await asyncio.wait_for(store.upsert_establishments(batch), timeout=timeout_s)
            except asyncio.TimeoutError:
                summary.errored += len(batch)
                summary.batches_failed += 1
                logger.error("%s batch %d: timed out after %.0fs (%d rows)",
                             city_slug, batch_no, timeout_s, len(batch))
                continue
            except Exception as e:
                summary.errored += len(batch)
                summary.batches_failed += 1
                logger.error("%s batch %d: write failed (%d rows): %s", city_slug, batch_no, len(batch), e)
                continue
            summary.inserted += written
            logger.info("%s batch %d: inserted/updated %d establishments", city_slug, batch_no, written)

    logger.info("Import done: inserted=%d skipped=%d errored=%d unmapped=%s",
                summary.inserted, summary.skipped, summary.errored,
                sorted(summary.unmapped_categories) or "none")
    return summary
