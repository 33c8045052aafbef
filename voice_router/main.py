"""Main FastAPI application for the voice call router."""

from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from voice_router.config import settings
from voice_router.api.connect import router as connect_router
from voice_router.clients.supabase_client import DatabaseManager
from voice_router.clients.voiceit_client import get_enrollment_provider
from voice_router.middleware import (
    RequestLoggingMiddleware,
    MetricsMiddleware,
    get_metrics
)
from voice_router.models.api_models import HealthResponse
from voice_router.observability import (
    configure_logging,
    setup_observability,
    instrument_fastapi_app
)

SERVICE_NAME = "voice-call-router"
SERVICE_VERSION = "1.0.0"

configure_logging(settings.log_level)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting voice call router",
                port=settings.port,
                host=settings.host,
                identity_table=settings.identity_table)

    # The enrollment provider client lives for the whole process
    get_enrollment_provider()

    yield

    logger.info("Shutting down voice call router")


app = FastAPI(
    title="Voice Call Router",
    description="Routes inbound Amazon Connect calls into voice enrollment and verification flows",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Order matters - last added is executed first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(MetricsMiddleware)

app.include_router(connect_router)

setup_observability(
    service_name=SERVICE_NAME,
    service_version=SERVICE_VERSION,
    otlp_endpoint=settings.otlp_endpoint,
    enable_console_export=settings.otel_console_export
)
instrument_fastapi_app(app)


@app.get("/healthz", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=SERVICE_VERSION
    )


@app.get("/readyz", response_model=HealthResponse)
async def readiness_check():
    """Readiness check; fails when the identity record store is unreachable."""
    db_healthy = await DatabaseManager().health_check()
    response = HealthResponse(
        status="ready" if db_healthy else "unavailable",
        timestamp=datetime.utcnow(),
        version=SERVICE_VERSION
    )
    if not db_healthy:
        logger.warning("Readiness check failed, record store unreachable")
        return JSONResponse(status_code=503, content=response.model_dump(mode="json"))
    return response


@app.get("/metrics")
async def metrics_endpoint():
    """Application metrics endpoint."""
    return {
        "timestamp": datetime.utcnow().isoformat(),
        "metrics": get_metrics()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "voice_router.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
