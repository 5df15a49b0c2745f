"""
Observability middleware for FastAPI.
Provides request correlation, logging, and metrics collection.
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from leadhub.obs.logging import get_logger, log_request, log_error, extract_trace_id
from leadhub.obs.metrics import record_http_request

logger = get_logger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Middleware for request observability (logging, metrics)."""

    def __init__(self, app, exclude_paths: list = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ['/health', '/metrics', '/docs', '/openapi.json']

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        trace_id = extract_trace_id(request)
        request.state.trace_id = trace_id

        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            record_http_request(
                route=request.url.path,
                method=request.method,
                status_code=500,
                duration_ms=duration_ms
            )
            log_error(
                logger=logger,
                error=e,
                trace_id=trace_id,
                user_id=getattr(request.state, 'user_id', None),
                route=request.url.path,
                method=request.method,
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-Id"] = trace_id

        record_http_request(
            route=request.url.path,
            method=request.method,
            status_code=response.status_code,
            duration_ms=duration_ms
        )
        log_request(
            logger=logger,
            request=request,
            status_code=response.status_code,
            latency_ms=duration_ms,
            trace_id=trace_id,
            user_id=getattr(request.state, 'user_id', None),
        )

        return response
