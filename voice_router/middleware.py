"""
Custom middleware for the voice call router.
"""

import time
import uuid
from datetime import datetime
from typing import Callable, Dict, Any, Optional

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from voice_router.models.api_models import ErrorResponse
from voice_router.observability import get_trace_context, record_http_metrics

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Contact-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request/response logging with correlation ID support.

    The correlation id is the Connect contact id when the caller sends one.
    """

    def __init__(self, app, exclude_paths: Optional[set] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/healthz", "/readyz", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        correlation_id = request.headers.get(CORRELATION_HEADER) or f"req_{uuid.uuid4().hex[:12]}"

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id, **get_trace_context())
        request.state.correlation_id = correlation_id

        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            user_agent=request.headers.get("User-Agent", "unknown")
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                process_time_ms=round(process_time * 1000, 2)
            )

            error = ErrorResponse(
                error="InternalServerError",
                message="An unexpected error occurred",
                correlation_id=correlation_id,
                timestamp=datetime.utcnow()
            )
            return JSONResponse(
                status_code=500,
                content=error.model_dump(mode="json"),
                headers={CORRELATION_HEADER: correlation_id}
            )

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2)
        )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestStats:
    """In-process request counters exposed on /metrics."""

    def __init__(self):
        self.reset()

    def record(self, status_code: int, processing_time: float) -> None:
        self.request_count += 1
        self.total_processing_time += processing_time
        if status_code >= 400:
            self.error_count += 1

    def reset(self) -> None:
        self.request_count = 0
        self.error_count = 0
        self.total_processing_time = 0.0

    def snapshot(self) -> Dict[str, Any]:
        """Get current metrics."""
        avg_processing_time = (
            self.total_processing_time / self.request_count
            if self.request_count > 0 else 0
        )

        return {
            "total_requests": self.request_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / self.request_count if self.request_count > 0 else 0,
            "avg_processing_time_ms": round(avg_processing_time * 1000, 2)
        }


# Global stats shared by every MetricsMiddleware instance
request_stats = RequestStats()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect basic metrics about requests.
    """

    def __init__(self, app, stats: Optional[RequestStats] = None):
        super().__init__(app)
        self.stats = stats or request_stats

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            processing_time = time.time() - start_time
            self.stats.record(status_code, processing_time)
            record_http_metrics(request.method, request.url.path, status_code, processing_time)


def get_metrics() -> Dict[str, Any]:
    """Get current application metrics."""
    return request_stats.snapshot()
