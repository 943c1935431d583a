"""FastAPI application — feedback intake, relay trigger, health and metrics."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    generate_latest,
    multiprocess,
)
from starlette.responses import PlainTextResponse, Response

from feedback_aggregator.api.feedback import router as feedback_router
from feedback_aggregator.api.queue import router as queue_router
from feedback_aggregator.config import settings
from feedback_aggregator.db import create_tables, engine
from feedback_aggregator.errors import FeedbackValidationError, StorageError
from feedback_aggregator.logging_config import setup_logging
from feedback_aggregator.observability import setup_opentelemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — setup / teardown."""
    setup_logging()
    setup_opentelemetry(app, engine=engine)
    if settings.DB_AUTO_CREATE:
        await create_tables()
    logger.info("Feedback aggregator API starting", extra={"env": settings.APP_ENV})
    yield
    logger.info("Feedback aggregator API shutting down")


app = FastAPI(
    title="Feedback Aggregator",
    version="0.1.0",
    description="Collects feedback from support, chat, code hosting, email, social and "
    "forum sources and relays it to the feedback workflow service.",
    lifespan=lifespan,
)

# ── CORS ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.APP_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ──
@app.exception_handler(FeedbackValidationError)
async def validation_error_handler(request: Request, exc: FeedbackValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid feedback data", "details": exc.reason},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Feedback storage failure", "details": str(exc)},
    )


app.include_router(feedback_router)
app.include_router(queue_router)


@app.get("/", tags=["ops"])
async def index() -> dict[str, Any]:
    """Service index."""
    return {
        "service": settings.SERVICE_NAME,
        "endpoints": {
            "POST /feedback": "Submit new feedback",
            "GET /feedback": "Retrieve feedback (supports ?source=, ?status=, ?limit=, ?offset=)",
            "POST /process-queue": "Relay pending feedback to the workflow service",
            "GET /health": "Health check",
            "GET /metrics": "Prometheus metrics",
            "GET /docs": "Interactive API documentation (Swagger UI)",
            "GET /openapi.json": "OpenAPI specification",
        },
    }


# ── Health ──
@app.get("/health", tags=["ops"])
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok", "service": settings.SERVICE_NAME}


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
