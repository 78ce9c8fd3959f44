"""API routers."""

from app.api.health import router as health_router
from app.api.router import api_router

__all__ = ["api_router", "health_router"]
