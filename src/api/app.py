"""FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.routes import router
from src.core.config import Settings
from src.jobs.engine import JobEngine, build_engine

logger = logging.getLogger(__name__)

SERVICE_NAME = "undervalued_listings_api"
VERSION = "3.2.0"
FEATURES = [
    "smart_search",
    "job_queue",
    "instagram_dm_ready",
    "similar_listings_fallback",
]


def create_app(
    settings: Settings | None = None,
    engine: JobEngine | None = None,
    api_key: str | None = None,
) -> FastAPI:
    """Build the app. The API key defaults to the env var named in settings."""
    settings = settings or Settings()
    engine = engine or build_engine(settings)
    api_key = api_key if api_key is not None else os.environ.get(settings.api.api_key_env)
    if not api_key:
        logger.warning("%s is not set; every /api request will be rejected", settings.api.api_key_env)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Listings API ready (%s)", VERSION)
        yield
        if engine.in_flight:
            logger.info("Waiting for %d in-flight jobs", engine.in_flight)
            await engine.join()

    app = FastAPI(title="Undervalued Listings API", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.api_key = api_key

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            content = exc.detail
        else:
            content = {"error": "Not Found" if exc.status_code == 404 else "Error", "message": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Bad Request", "message": "Malformed request", "details": str(exc.errors())},
        )

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "features": FEATURES,
            "activeJobs": engine.store.count_active(),
        }

    app.include_router(router)
    return app
