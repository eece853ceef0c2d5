"""
FastAPI application entry point for the Civic Lifeline data API.

This module provides the main FastAPI application with:
- Dataset routes (food, housing, jobs, broadband, geocode)
- Community resource submission and moderation routes
- Health, readiness and Prometheus metrics endpoints
- Request/response logging with correlation ids
- Uniform ``{"error": {...}}`` error bodies
- Shared client lifecycle (aiohttp, Redis, MongoDB)
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from lifeline_shared.errors import CivicDataError, UpstreamUnavailableError
from lifeline_shared.logging import configure_logging
from lifeline_shared.metrics import get_metrics
from lifeline_shared.models import HealthStatus

from lifeline_api.src.config import Settings, get_settings
from lifeline_api.src.dependencies import is_debug_request
from lifeline_api.src.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from lifeline_api.src.routers import broadband, food, geocode, housing, jobs, resources
from lifeline_api.src.services.container import AppServices, create_services

# Initialize logger
logger = structlog.get_logger(__name__)

SERVICE_NAME = "civic-lifeline-api"

HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


# ============================================================================
# Error rendering
# ============================================================================


def error_body(code: str, message: Optional[str] = None, upstream: Optional[str] = None) -> Dict[str, Any]:
    """``{"error": {"code", "message"?, "upstream"?}}``"""
    error: Dict[str, Any] = {"code": code}
    if message:
        error["message"] = message
    if upstream:
        error["upstream"] = upstream
    return {"error": error}


def format_request_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UpstreamUnavailableError)
    async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError):
        """Upstream detail is hidden unless the caller passed ``?debug``."""
        logger.error(
            "upstream_unavailable",
            path=request.url.path,
            upstream=exc.upstream,
            error=exc.message,
        )
        message = exc.message if is_debug_request(request) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, message=message, upstream=exc.upstream),
        )

    @app.exception_handler(CivicDataError)
    async def civic_error_handler(request: Request, exc: CivicDataError):
        """Handle domain errors."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "request_rejected",
            path=request.url.path,
            code=exc.code,
            status_code=exc.status_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, message=exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request body validation errors."""
        logger.warning("validation_error", path=request.url.path, errors=exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("BAD_REQUEST", message=format_request_errors(exc)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        logger.warning(
            "http_exception",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail,
        )
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, message=str(exc.detail) if exc.detail else None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            "unexpected_exception",
            path=request.url.path,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("SERVER_ERROR"),
        )


# ============================================================================
# Application factory
# ============================================================================


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[AppServices] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use, defaults to ``get_settings()``
        services: Pre-built service container. When given, the lifespan
            uses it as-is and leaves closing it to the caller.

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    metrics = services.metrics if services is not None else get_metrics()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=SERVICE_NAME,
        environment=settings.environment,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan manager for startup and shutdown events.

        Handles:
        - aiohttp session, Redis and MongoDB client creation
        - Service wiring
        - Graceful shutdown and resource cleanup
        """
        logger.info(
            "application_starting",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        )

        owned = services is None
        try:
            app.state.services = services if services is not None else await create_services(settings, metrics)
            logger.info("application_started")
            yield
        except Exception as e:
            logger.error("application_startup_failed", error=str(e), exc_info=True)
            raise
        finally:
            logger.info("application_shutting_down")
            current = getattr(app.state, "services", None)
            if owned and current is not None:
                await current.close()
            logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Normalized, cached access to civic datasets and community resources",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url="/openapi.json",
    )

    # ------------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------------

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["X-Correlation-ID", "x-cache"],
        )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware, metrics=metrics)
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    # ------------------------------------------------------------------------
    # Health and metrics
    # ------------------------------------------------------------------------

    @app.get("/health", tags=["Health"], response_class=JSONResponse)
    async def health_check() -> Dict[str, Any]:
        """
        Health check endpoint.

        Returns basic health status without checking dependencies.
        Use for container health checks.
        """
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/ready", tags=["Health"], response_class=JSONResponse)
    async def readiness_check(request: Request):
        """
        Readiness check endpoint.

        Pings Redis and MongoDB. A configured store that does not answer
        makes the service not ready; an unconfigured one is ``disabled``.
        """
        app_services: AppServices = request.app.state.services
        checks = await app_services.dependency_health()

        ready = all(s != HealthStatus.UNHEALTHY for s in checks.values())
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if ready else "not_ready",
                "service": settings.app_name,
                "version": settings.app_version,
                "checks": {name: s.value for name, s in checks.items()},
            },
        )

    @app.get("/metrics", tags=["Monitoring"], response_class=PlainTextResponse)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    # ------------------------------------------------------------------------
    # API routers
    # ------------------------------------------------------------------------

    for router in (food.router, housing.router, jobs.router, broadband.router, resources.router, geocode.router):
        app.include_router(router, prefix=settings.api_prefix)

    return app


app = create_app()


def main() -> None:
    """
    Run the application with Uvicorn.

    Installed as the ``civic-lifeline-api`` console script.
    """
    settings = get_settings()
    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )

    uvicorn.run(
        "lifeline_api.src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
