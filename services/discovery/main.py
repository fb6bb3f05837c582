"""
PawsCities discovery service: LLM discovery, validation queue review, research runs.

Entrypoint: pawscities-discovery (or uvicorn services.discovery.main:app --host 0.0.0.0 --port 8000)
"""

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from services.discovery.config import settings
from services.discovery.db.engine import create_engine
from services.discovery.middleware.sentry import setup_sentry
from services.discovery.pipeline.research_llm import build_provider
from services.discovery.routers import admin_research, admin_validation, health

logger = logging.getLogger(__name__)

_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_sentry()
    app.state.settings = settings

    sa_engine = None
    app.state.db_session_factory = None
    if settings.database_url:
        try:
            sa_engine = create_engine()
            # expire_on_commit=False: NullPool returns the connection after commit.
            app.state.db_session_factory = async_sessionmaker(sa_engine, expire_on_commit=False)
        except Exception as e:
            logger.warning("SA engine failed to init: %s", e)

    app.state.research_provider = None
    if settings.anthropic_api_key:
        app.state.research_provider = build_provider(settings.anthropic_api_key)
    else:
        logger.warning("ANTHROPIC_API_KEY not set: POST /admin/research will return 503")

    yield

    if sa_engine:
        await sa_engine.dispose()


app = FastAPI(
    title="PawsCities Discovery API",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(admin_validation.router)
app.include_router(admin_research.router)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# -- Exception Handlers --

def _error_response(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message},
            "requestId": request_id,
        },
        headers={"X-Request-ID": request_id},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else "Resource not found."
    return _error_response(request, exc.status_code, code, message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', '')}" for e in errors
    ) or "Validation error."
    return _error_response(request, 422, "VALIDATION_ERROR", message)


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return _error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")


def run() -> None:
    uvicorn.run(
        "services.discovery.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development" and settings.debug,
    )


if __name__ == "__main__":
    run()
