"""Middleware for request context, logging and response headers."""

from .request_context import RequestLoggingMiddleware, SecurityHeadersMiddleware

__all__ = ["RequestLoggingMiddleware", "SecurityHeadersMiddleware"]
