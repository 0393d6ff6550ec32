"""
FastAPI application entry point with health check route.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from hhs.api.routes import artists, auth, bookings
from hhs.api.middleware.error_handler import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from hhs.lib.logging import get_logger, set_correlation_id
from hhs.lib.metrics import get_metrics_collector
from hhs.lib.settings import settings
from hhs.services.notification_service import shutdown_notification_dispatcher

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Attach a correlation_id to every request.
    Accepts X-Correlation-ID from incoming requests or generates a new one.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

        # Route handlers and exception handlers read it from request.state;
        # log records pick it up from the context variable
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        logger.info(
            "Incoming request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            logger.info("Response sent", extra={"status_code": response.status_code})
            return response
        finally:
            set_correlation_id(None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup/shutdown events.
    """
    logger.info("Henna Harmony Studio API starting up", extra={"environment": settings.environment})
    yield
    # Let queued notifications finish before the process exits
    shutdown_notification_dispatcher()
    logger.info("Henna Harmony Studio API shutting down")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Accounts, consultation bookings, artist profiles and reviews",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)


# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# Include routers
app.include_router(auth.router)
app.include_router(bookings.router)
app.include_router(artists.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """
    Prometheus-compatible metrics endpoint.

    Metrics exposed:
    - bookings_created_total: New bookings by consultation type
    - booking_transitions_total: Status changes by from/to status
    - confirmation_code_collisions_total: Codes regenerated after a unique clash
    - reviews_submitted_total: Review writes by outcome
    - auth_events_total: Register/login/refresh attempts by outcome
    - notifications_total: Background notifications by kind and delivery status
    """
    metrics = get_metrics_collector()
    return PlainTextResponse(
        content=metrics.export_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
