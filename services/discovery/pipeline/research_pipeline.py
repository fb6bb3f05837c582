"""City research orchestrator: discovery -> validation queue.

Usage:
    python -m services.discovery.pipeline.research_pipeline paris [--categories cafes parks] [--no-enqueue]

Each category's candidates are enqueued as soon as that category finishes,
so an interrupted run keeps everything already written.
"""
import argparse
import asyncio
import contextlib
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from services.discovery.config import settings
from services.discovery.db.engine import standalone_session
from services.discovery.pipeline.city_configs import UnknownCityError, get_city_config
from services.discovery.pipeline.research_llm import (
    CityResearchSummary,
    ResearchProvider,
    ResearchRequest,
    ResearchResult,
    build_provider,
    discover_places,
    research_city,
)
from services.discovery.pipeline.validation_queue import enqueue_candidates

logger = logging.getLogger(__name__)


async def research_and_enqueue(
    session: Optional[AsyncSession],
    request: ResearchRequest,
    *,
    provider: ResearchProvider,
) -> tuple[ResearchResult, list[str]]:
    """One discovery call; its candidates go to the queue as pending items."""
    result = await discover_places(request, provider=provider)
    ids: list[str] = []
    if session is not None and result.places:
        ids = await enqueue_candidates(session, request.city_slug, result.places, research_task_id=result.task_id)
    return result, ids


async def run_city_research(
    session: Optional[AsyncSession],
    city_slug: str,
    *,
    provider: ResearchProvider,
    categories: Optional[list[str]] = None,
    max_per_category: int = settings.research_max_per_category,
    delay_s: Optional[float] = None,
) -> tuple[CityResearchSummary, int]:
    """
    Research a city category by category. With a session, each category's
    candidates are enqueued right away. Returns the summary and the number
    of enqueued items.
    """
    enqueued = 0

    async def _persist(result: ResearchResult) -> None:
        nonlocal enqueued
        if session is None or not result.places:
            return
        ids = await enqueue_candidates(session, city_slug, result.places, research_task_id=result.task_id)
        enqueued += len(ids)

    summary = await research_city(
        city_slug, categories, max_per_category,
        provider=provider, delay_s=delay_s, on_result=_persist,
    )
    return summary, enqueued


def summary_to_dict(summary: CityResearchSummary, enqueued: int) -> dict:
    return {
        "city": summary.city_slug,
        "places_found": summary.places_found,
        "tokens_used": summary.tokens_used,
        "enqueued": enqueued,
        "failed_categories": summary.failed_categories,
        "results": [
            {**asdict(r), "places": [p.name for p in r.places]} for r in summary.results
        ],
    }


async def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Discover dog-friendly places for a city and queue them for review")
    parser.add_argument("city", help="City slug (e.g. paris, london, newyork)")
    parser.add_argument("--categories", nargs="+", help="Categories to research (default: restaurants cafes parks hotels)")
    parser.add_argument("--max-per-category", type=int, default=settings.research_max_per_category)
    parser.add_argument("--no-enqueue", action="store_true", help="Print results without writing to the queue")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        get_city_config(args.city)
        provider = build_provider()
    except (UnknownCityError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    async with contextlib.AsyncExitStack() as stack:
        session = None
        if not args.no_enqueue:
            session = await stack.enter_async_context(standalone_session())
        summary, enqueued = await run_city_research(
            session, args.city,
            provider=provider,
            categories=args.categories,
            max_per_category=args.max_per_category,
        )

    print(json.dumps(summary_to_dict(summary, enqueued), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
