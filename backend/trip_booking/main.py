"""
Trip Booking API - Main Application Entry Point

Seat inventory and payment-driven booking lifecycle:
- Concurrency-safe seat reservation under per-entity exclusive holds
- PENDING_PAYMENT -> CONFIRMED / EXPIRED / CANCELLED state machine
- Idempotent payment webhook reconciliation
- Periodic expiry sweep for unpaid reservations
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trip_booking.core.config import get_settings
from trip_booking.core.exceptions import BookingError
from trip_booking.core.logging import setup_logging, get_logger
from trip_booking.core.metrics import metrics_endpoint
from trip_booking.api.router import api_router
from trip_booking.api.middleware import RequestLoggingMiddleware
from trip_booking.db.session import get_engine
from trip_booking.infrastructure.redis_client import RedisClient
from trip_booking.services.coordinator import get_coordinator
from trip_booking.services.expiry_service import run_sweeper

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
        hold_strategy=settings.HOLD_STRATEGY,
    )

    coordinator = get_coordinator()
    stop = asyncio.Event()
    sweeper = None
    if settings.SWEEP_ENABLED:
        sweeper = asyncio.create_task(
            run_sweeper(coordinator, settings.SWEEP_INTERVAL_SECONDS, stop)
        )
    else:
        logger.warning("sweeper_disabled", message="Stale bookings will not be expired")

    yield

    # Cleanup
    stop.set()
    if sweeper is not None:
        await sweeper
    await RedisClient.close()
    await get_engine().dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Trip seat inventory and payment-driven booking lifecycle",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger = get_logger(__name__)
    if exc.status_code >= 500:
        logger.error("booking_error", code=exc.code, detail=exc.message)
    else:
        logger.info("booking_rejected", code=exc.code, detail=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "hold_strategy": settings.HOLD_STRATEGY,
        "sweep_enabled": settings.SWEEP_ENABLED,
    }


@app.get("/metrics", tags=["Health"])
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
