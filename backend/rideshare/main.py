"""
Rideshare Booking API - Main Application Entry Point

Drivers publish trips with a fixed number of seats; passengers search and
reserve them. Highlights:
- Seat inventory that is never over-committed, even under concurrent bookings
  (per-trip lock + optimistic versioned writes)
- Explicit booking state machine: pending -> confirmed -> cancelled
- Redis caching of trip search with invalidation on every mutation
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rideshare.core.config import get_settings
from rideshare.core.exceptions import RideshareError
from rideshare.core.logging import setup_logging, get_logger
from rideshare.core.metrics import metrics_endpoint
from rideshare.api.router import api_router
from rideshare.api.middleware import RequestLoggingMiddleware
from rideshare.db.session import engine
from rideshare.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

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
        logger.warning("redis_unavailable", message="Running without search cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Ride-sharing trips and seat bookings with a consistent seat inventory",
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


@app.exception_handler(RideshareError)
async def rideshare_error_handler(request: Request, exc: RideshareError) -> JSONResponse:
    logger.info("request_rejected", code=exc.code, status_code=exc.status_code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
