"""
Error taxonomy shared by the API routes, the upstream fetcher and the workers.

Every error carries a stable machine-readable ``code``. The HTTP status is
attached here so the API exception handlers can render any taxonomy error
without a lookup table:

- ValidationError (400): malformed or missing query parameters
- NotFoundError (404): no matching record
- UpstreamUnavailableError (503): upstream failed after retries
- StoreUnavailableError (503): persistence layer not configured
- CacheError: never rendered, logged and ignored
"""

from typing import Optional


class CivicDataError(Exception):
    """Base class for all domain errors."""

    code: str = "SERVER_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# ============================================================================
# Request errors
# ============================================================================


class ValidationError(CivicDataError):
    """Malformed or missing request parameters."""

    code = "BAD_REQUEST"
    status_code = 400


class InvalidBbox(ValidationError):
    """Bounding box with the wrong number of values or non-numeric values."""


class UnsupportedGeoError(ValidationError):
    """Geography level that is accepted by the schema but not served."""

    code = "UNSUPPORTED_GEO"


class NotFoundError(CivicDataError):
    """No record matches the request."""

    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(CivicDataError):
    """Caller is not allowed to perform a moderation action."""

    code = "FORBIDDEN"
    status_code = 403


class StoreUnavailableError(CivicDataError):
    """The document store is not configured for this deployment."""

    code = "STORE_UNAVAILABLE"
    status_code = 503


# ============================================================================
# Upstream errors
# ============================================================================


class UpstreamError(CivicDataError):
    """A single failed exchange with a third-party API."""

    code = "UPSTREAM_ERROR"
    status_code = 502

    def __init__(self, upstream: str, message: str = ""):
        super().__init__(message or f"{upstream} request failed")
        self.upstream = upstream


class UpstreamHttpError(UpstreamError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, upstream: str, status: int):
        super().__init__(upstream, f"HTTP {status}")
        self.status = status


class UpstreamErrorBody(UpstreamError):
    """Upstream answered 2xx but the body is an explicit error envelope."""

    def __init__(self, upstream: str, detail: str = ""):
        message = f"{upstream} error body"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(upstream, message)
        self.detail = detail


class UpstreamTransportError(UpstreamError):
    """Connection failure, timeout, or an unparseable body."""


class UpstreamUnavailableError(CivicDataError):
    """Upstream could not be reached successfully after all retries."""

    code = "UPSTREAM_UNAVAILABLE"
    status_code = 503

    def __init__(self, upstream: str, cause: Optional[BaseException] = None):
        super().__init__(str(cause) if cause else f"{upstream} unavailable")
        self.upstream = upstream
        self.cause = cause


# ============================================================================
# Cache errors
# ============================================================================


class CacheError(CivicDataError):
    """Cache read or write failure. Non-fatal by contract."""

    code = "CACHE_ERROR"
