"""
Seatify API - Main Application Entry Point

Seat reservation and on-site attendance for scheduled events:
- Exclusive seat claims via conditional updates (no double booking)
- QR-code toggle check-in / check-out with accidental-scan correction
- Background scheduler that moves events UPCOMING -> ONGOING -> FINISHED
- Redis-cached event listings, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seatify.core.config import get_settings
from seatify.core.exceptions import SeatifyError
from seatify.core.logging import setup_logging, get_logger
from seatify.core.metrics import metrics_endpoint
from seatify.api.router import api_router
from seatify.api.middleware import RequestLoggingMiddleware
from seatify.db.session import AsyncSessionLocal
from seatify.services.cache_service import get_redis, close_redis, get_cache_stats
from seatify.services.event_lifecycle import EventLifecycleScheduler

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    scheduler = EventLifecycleScheduler(
        AsyncSessionLocal,
        interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
    )
    app.state.scheduler = scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()

    yield

    await scheduler.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat reservation and QR attendance API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(SeatifyError)
async def seatify_error_handler(request: Request, exc: SeatifyError):
    get_logger(__name__).info(
        "request_rejected",
        code=exc.code,
        reason=exc.reason,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "scheduler": "running" if scheduler and scheduler.running else "stopped",
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
