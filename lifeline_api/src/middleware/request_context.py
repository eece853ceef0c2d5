"""
Request context middleware.

- RequestLoggingMiddleware: correlation id, timing, HTTP metrics and
  ``request_started``/``request_completed``/``request_failed`` log events
- SecurityHeadersMiddleware: conservative browser security headers
"""

import time
import uuid
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from lifeline_shared.logging import bind_context, unbind_context
from lifeline_shared.metrics import CivicMetrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _endpoint_label(request: Request) -> str:
    """
    Route template (``/api/resources/{resource_id}/verify``) rather than the raw path.

    Built from the request path with each matched path parameter replaced by
    ``{name}``, so include prefixes are kept whichever way the router
    reports the matched route.
    """
    path = request.url.path
    params = request.scope.get("path_params") or {}
    if not params:
        return path
    names = {str(value): name for name, value in params.items()}
    return "/".join(
        f"{{{names[segment]}}}" if segment in names else segment
        for segment in path.split("/")
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    def __init__(self, app: ASGIApp, metrics: Optional[CivicMetrics] = None):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        """Process request and log details."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        bind_context(correlation_id=correlation_id)

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        start_time = time.perf_counter()

        logger.info("request_started", method=method, path=path, client_ip=client_ip)

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            if self.metrics:
                endpoint = _endpoint_label(request)
                self.metrics.http_requests.labels(
                    method=method, endpoint=endpoint, status=response.status_code
                ).inc()
                self.metrics.http_request_duration.labels(
                    method=method, endpoint=endpoint
                ).observe(duration)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                cache=response.headers.get("x-cache"),
                duration=f"{duration:.3f}s",
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{duration:.3f}s",
                exc_info=True,
            )
            raise

        finally:
            unbind_context("correlation_id")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response
