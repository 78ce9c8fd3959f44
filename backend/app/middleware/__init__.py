"""Middleware module for CrewHub backend."""

from app.middleware.csrf import CSRFMiddleware
from app.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "CSRFMiddleware",
    "SecurityHeadersMiddleware",
]
