"""
FastAPI dependency injection for services, query validation and moderation.

Provides injectable dependencies for:
- The per-process service container (``AppServices`` on ``app.state``)
- Dataset services and the resource/broadband services that need MongoDB
- Query-string validation into typed query models
- Caller identity headers and the moderator API key check

All dependencies use FastAPI's dependency injection system and are designed
to be overridable in tests.
"""

import hmac
from typing import Callable, Optional, Type

import structlog
from fastapi import Depends, Request

from lifeline_shared.errors import ForbiddenError, StoreUnavailableError

from lifeline_api.src.config import Settings
from lifeline_api.src.models.queries import Q, parse_query
from lifeline_api.src.services.broadband import BroadbandService
from lifeline_api.src.services.container import AppServices
from lifeline_api.src.services.food import FoodService
from lifeline_api.src.services.geocode import GeocodeService
from lifeline_api.src.services.housing import HousingService
from lifeline_api.src.services.jobs import JobsService
from lifeline_api.src.services.resources import ResourceService

logger = structlog.get_logger(__name__)

USER_EMAIL_HEADER = "x-user-email"


# ============================================================================
# SERVICE CONTAINER
# ============================================================================


def get_services(request: Request) -> AppServices:
    """
    Get the service container built by the application lifespan.

    Args:
        request: HTTP request

    Returns:
        AppServices stored on ``app.state.services``
    """
    return request.app.state.services


def get_app_settings(services: AppServices = Depends(get_services)) -> Settings:
    return services.settings


def get_food_service(services: AppServices = Depends(get_services)) -> FoodService:
    return services.food


def get_housing_service(services: AppServices = Depends(get_services)) -> HousingService:
    return services.housing


def get_jobs_service(services: AppServices = Depends(get_services)) -> JobsService:
    return services.jobs


def get_geocode_service(services: AppServices = Depends(get_services)) -> GeocodeService:
    return services.geocode


def get_broadband_service(services: AppServices = Depends(get_services)) -> BroadbandService:
    """
    Get the broadband service.

    Raises:
        StoreUnavailableError: If MongoDB is not configured
    """
    if services.broadband is None:
        raise StoreUnavailableError("MONGO_URI is not configured")
    return services.broadband


def get_resource_service(services: AppServices = Depends(get_services)) -> ResourceService:
    """
    Get the community resource service.

    Raises:
        StoreUnavailableError: If MongoDB is not configured
    """
    if services.resources is None:
        raise StoreUnavailableError("MONGO_URI is not configured")
    return services.resources


# ============================================================================
# QUERY VALIDATION
# ============================================================================


def validated_query(model: Type[Q]) -> Callable[[Request], Q]:
    """
    Build a dependency that validates the query string against ``model``.

    Validation happens before any cache or upstream access; failures raise
    ``ValidationError`` and render as 400.

    Example:
        @router.get("/snap")
        async def snap(query: SnapQuery = Depends(validated_query(SnapQuery))):
            ...
    """

    def dependency(request: Request) -> Q:
        return parse_query(model, request.query_params)

    return dependency


def is_debug_request(request: Request) -> bool:
    """True when the caller asked for upstream error detail with ``?debug``."""
    return "debug" in request.query_params


# ============================================================================
# CALLER IDENTITY
# ============================================================================


async def get_user_email(request: Request) -> Optional[str]:
    """
    Get the submitter email forwarded by the front end.

    Args:
        request: HTTP request

    Returns:
        Email or None
    """
    value = request.headers.get(USER_EMAIL_HEADER)
    return value or None


async def require_moderator(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> None:
    """
    Check the moderator API key when one is configured.

    Deployments without ``MODERATOR_API_KEY`` leave verification open.

    Raises:
        ForbiddenError: If a key is configured and the header does not match
    """
    expected = settings.moderator_api_key
    if not expected:
        return

    provided = request.headers.get(settings.moderator_api_key_header) or ""
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("moderator_key_rejected", path=request.url.path)
        raise ForbiddenError("moderator key required")
