import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from unfurler.api.v1.health import router as health_router
from unfurler.api.v1.router import api_router
from unfurler.config import settings
from unfurler.core.exceptions import UnfurlError
from unfurler.core.logging_config import configure_logging
from unfurler.middleware.metrics import MetricsMiddleware
from unfurler.middleware.request_id import RequestIDMiddleware
from unfurler.services.fetcher import close_http_client

# Structured logging
configure_logging(
    log_format=settings.LOG_FORMAT,
    log_level=settings.LOG_LEVEL,
    service=settings.APP_NAME.lower(),
    version=settings.APP_VERSION,
)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"unfurler@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    yield

    logger.info("Shutting down...")
    await close_http_client()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Unfurler - link preview service. "
    "Turns a URL into title, description, image, video and embed-provider "
    "metadata for rich link previews.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.exception_handler(UnfurlError)
async def unfurl_error_handler(request: Request, exc: UnfurlError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.detail}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


# Request ID middleware
app.add_middleware(RequestIDMiddleware)

if settings.METRICS_ENABLED:
    app.add_middleware(MetricsMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(api_router)

# Health & metrics routes (no /v1 prefix)
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "status": "running",
    }
