"""Admin route for on-demand discovery runs. Results land in the validation queue."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from services.discovery.pipeline.city_configs import UnknownCityError, get_city_config
from services.discovery.pipeline.research_llm import DEFAULT_MAX_RESULTS, ResearchRequest
from services.discovery.pipeline.research_pipeline import research_and_enqueue
from services.discovery.routers._admin_deps import get_db, get_research_provider

router = APIRouter(prefix="/admin/research", tags=["admin-research"])


class ResearchTriggerRequest(BaseModel):
    citySlug: str = Field(..., min_length=1, max_length=100)
    categories: list[str] = Field(default_factory=list, max_length=9)
    maxResults: int = Field(default=DEFAULT_MAX_RESULTS, ge=1, le=50)
    language: str = Field(default="en", pattern=r"^(en|fr)$")


@router.post("")
async def trigger_research(
    body: ResearchTriggerRequest,
    db: AsyncSession = Depends(get_db),
    provider=Depends(get_research_provider),
):
    try:
        get_city_config(body.citySlug)
    except UnknownCityError:
        raise HTTPException(status_code=404, detail=f"Unknown city: {body.citySlug}")

    request = ResearchRequest(
        city_slug=body.citySlug,
        categories=body.categories,
        max_results=body.maxResults,
        language=body.language,
    )
    result, queued_ids = await research_and_enqueue(db, request, provider=provider)

    return {
        "taskId": result.task_id,
        "city": result.city_slug,
        "categories": result.categories,
        "status": result.status,
        "placesFound": result.places_found,
        "tokensUsed": result.tokens_used,
        "durationMs": result.duration_ms,
        "error": result.error,
        "warnings": result.warnings,
        "queuedIds": queued_ids,
        "places": [p.to_dict() for p in result.places],
    }
