"""FastAPI application — health, metrics, CORS and the tenant routers."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    generate_latest,
    multiprocess,
)
from starlette.responses import PlainTextResponse, Response

from feedback_engine.api.errors import install_error_handlers
from feedback_engine.api.feedback import router as feedback_router
from feedback_engine.api.reports import router as reports_router
from feedback_engine.api.responses import router as responses_router
from feedback_engine.api.reviews import router as reviews_router
from feedback_engine.config import settings
from feedback_engine.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — setup / teardown."""
    setup_logging()
    logger.info("Guest feedback engine starting", extra={"env": settings.APP_ENV})
    yield
    logger.info("Guest feedback engine shutting down")


app = FastAPI(
    title="Guest Feedback Engine",
    version="0.1.0",
    description="Feedback triage, review response lifecycle and critical alerting",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.APP_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

app.include_router(feedback_router)
app.include_router(reviews_router)
app.include_router(responses_router)
app.include_router(reports_router)


@app.get("/health", tags=["ops"])
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok", "service": "guest-feedback-engine"}


# ── Prometheus Metrics ──
@app.get("/metrics", tags=["ops"])
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    try:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        data = generate_latest(registry)
    except ValueError:
        # Not running in multiprocess mode
        data = generate_latest()
    return PlainTextResponse(content=data, media_type=CONTENT_TYPE_LATEST)
