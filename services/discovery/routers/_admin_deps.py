"""Shared dependencies for admin routers."""
from fastapi import HTTPException, Request

DEFAULT_REVIEWER = "admin"


async def get_db(request: Request):
    """Get an SA AsyncSession from app state's session factory."""
    factory = getattr(request.app.state, "db_session_factory", None)
    if factory is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    async with factory() as session:
        yield session


async def get_reviewer(request: Request) -> str:
    """
    Reviewer identity recorded on queue decisions. Authentication happens
    upstream in the web app, which forwards the admin id in X-Admin-User-Id.
    """
    return request.headers.get("x-admin-user-id") or DEFAULT_REVIEWER


async def get_research_provider(request: Request):
    provider = getattr(request.app.state, "research_provider", None)
    if provider is None:
        raise HTTPException(status_code=503, detail="Research provider not configured")
    return provider
