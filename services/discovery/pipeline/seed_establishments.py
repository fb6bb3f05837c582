"""Seed establishments from curated batch files or approved queue items.

Usage:
    python -m services.discovery.pipeline.seed_establishments [FILES...] [--data-dir DIR]
    python -m services.discovery.pipeline.seed_establishments --from-queue [--city paris]
    python -m services.discovery.pipeline.seed_establishments --dry-run

Exit code 1 only for setup problems (no DATABASE_URL for a real run, store
unreachable, empty city/category tables). Skipped or failed records are
reported in the summary and never change the exit code.
"""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import asyncpg

from services.discovery.config import settings
from services.discovery.db.engine import standalone_session
from services.discovery.pipeline.batch_files import default_batch_paths, load_batch_files
from services.discovery.pipeline.candidates import ImportRecord
from services.discovery.pipeline.categories import CATEGORIES
from services.discovery.pipeline.city_configs import CITY_CONFIGS
from services.discovery.pipeline.establishment_importer import (
    ImportSetupError,
    ImportSummary,
    PostgresEstablishmentStore,
    import_batch,
    load_lookups,
)
from services.discovery.pipeline.validation_queue import fetch_approved_records

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("research-output")


def placeholder_lookups() -> tuple[dict[str, str], dict[str, str]]:
    """Stand-in ids for dry runs without a database."""
    city_ids = {slug: f"city-{i}" for i, slug in enumerate(CITY_CONFIGS)}
    category_ids = {c.slug: f"cat-{i}" for i, c in enumerate(CATEGORIES)}
    return city_ids, category_ids


def collect_file_records(paths: list[Path], city: Optional[str] = None) -> tuple[list[ImportRecord], int]:
    """Records from batch files plus the count of places dropped during parsing."""
    records: list[ImportRecord] = []
    dropped = 0
    for batch in load_batch_files(paths):
        if city and batch.city_slug != city:
            continue
        records.extend(batch.records)
        dropped += batch.dropped
    return records, dropped


def format_summary(summary: ImportSummary, *, dry_run: bool) -> str:
    lines = ["", "=" * 42, "SEED SUMMARY" + (" (dry run)" if dry_run else ""), "=" * 42]
    if dry_run:
        lines.append(f"   Would insert/update: {summary.would_write}")
        for row in summary.sample:
            lines.append(f"      - {row['name']} -> slug: {row['slug']!r}, cat: {row['category_id']}")
    else:
        lines.append(f"   Inserted/updated: {summary.inserted}")
    lines.append(f"   Skipped:          {summary.skipped}")
    lines.append(f"   Errors:           {summary.errored} ({summary.batches_failed} batches)")
    if summary.unmapped_categories:
        lines.append(f"   Unmapped categories: {', '.join(sorted(summary.unmapped_categories))}")
    return "\n".join(lines)


async def run_seed(
    records: list[ImportRecord],
    *,
    pool=None,
    dry_run: bool = False,
    batch_size: int = settings.import_batch_size,
) -> ImportSummary:
    """Resolve lookups (real or placeholder) and import. Raises ImportSetupError."""
    store = PostgresEstablishmentStore(pool) if pool is not None else None
    if store is None:
        if not dry_run:
            raise ImportSetupError("DATABASE_URL is required unless --dry-run is set")
        logger.info("Dry run without a database: using placeholder city/category ids")
        city_ids, category_ids = placeholder_lookups()
    else:
        try:
            city_ids, category_ids = await load_lookups(store)
        except asyncpg.PostgresError as exc:
            raise ImportSetupError(f"Lookup query failed: {exc}") from exc

    return await import_batch(
        records, city_ids, category_ids,
        store=store, dry_run=dry_run, batch_size=batch_size,
    )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed establishments from research batch files or the validation queue")
    parser.add_argument("files", nargs="*", type=Path, help="Batch files (default: the per-city files in --data-dir)")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR)
    parser.add_argument("--from-queue", action="store_true", help="Import approved validation queue items")
    parser.add_argument("--city", help="Only import this city slug")
    parser.add_argument("--dry-run", action="store_true", help="Resolve everything, write nothing")
    parser.add_argument("--batch-size", type=int, default=settings.import_batch_size)
    parser.add_argument("--database-url", default=os.environ.get("DATABASE_URL"))
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


async def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not args.database_url and (not args.dry_run or args.from_queue):
        logger.error("DATABASE_URL not set (required unless --dry-run)")
        return 1

    if args.from_queue:
        async with standalone_session(args.database_url) as session:
            records = await fetch_approved_records(session, city=args.city)
        dropped = 0
    else:
        paths = args.files or default_batch_paths(args.data_dir)
        records, dropped = collect_file_records(paths, city=args.city)

    pool = None
    try:
        if args.database_url:
            pool = await asyncpg.create_pool(args.database_url, command_timeout=settings.store_timeout_s)
        summary = await run_seed(records, pool=pool, dry_run=args.dry_run, batch_size=args.batch_size)
    except (ImportSetupError, OSError) as exc:
        logger.error("Seeding aborted: %s", exc)
        return 1
    finally:
        if pool is not None:
            await pool.close()

    summary.skipped += dropped
    print(format_summary(summary, dry_run=args.dry_run))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
