"""CrewHub Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router, health_router
from app.core import async_session_maker, engine, settings, setup_logging
from app.core.logging import get_logger
from app.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from app.middleware.csrf import CSRF_HEADER_NAME

# Import all models to ensure they're registered with Base for Alembic
from app.models import LoginAttempt, User, VerificationToken  # noqa: F401
from app.services.auth import cleanup_expired_verification_tokens
from app.services.token_denylist import (
    InMemoryTokenDenylist,
    RedisTokenDenylist,
    TokenDenylist,
    create_redis_client,
)

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _cleanup_loop(denylist: TokenDenylist) -> None:
    """Periodically remove expired email links and in-process denylist entries."""
    while True:
        await asyncio.sleep(300)  # Every 5 minutes
        try:
            async with async_session_maker() as db:
                removed = await cleanup_expired_verification_tokens(db)
                await db.commit()
                if removed > 0:
                    logger.info(f"Cleaned up {removed} expired verification tokens")
            if isinstance(denylist, InMemoryTokenDenylist):
                dropped = denylist.cleanup_expired()
                if dropped > 0:
                    logger.info(f"Cleaned up {dropped} expired denylist entries")
        except Exception:
            logger.exception("Error in cleanup loop")


def build_token_denylist() -> TokenDenylist:
    """Redis-backed denylist, or an in-process one when REDIS_URL is unset."""
    if settings.redis_url:
        return RedisTokenDenylist(create_redis_client(settings.redis_url))
    logger.warning("REDIS_URL not set, revoked tokens are only tracked in this process")
    return InMemoryTokenDenylist()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    denylist: TokenDenylist = app.state.token_denylist
    if not await denylist.ping():
        logger.error("Token denylist is unreachable, logout cannot revoke sessions")

    cleanup_task = asyncio.create_task(_cleanup_loop(denylist))
    cleanup_task.add_done_callback(task_done_callback)

    yield

    # Shutdown
    logger.info("Shutting down...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    if isinstance(denylist, RedisTokenDenylist):
        await denylist.close()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Community platform backend: accounts, sessions and member directory",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.token_denylist = build_token_denylist()

    # Security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    # Double-submit CSRF check on every state-changing request
    app.add_middleware(CSRFMiddleware, secret_key=settings.csrf_secret_key)

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 403 from CSRF.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
            CSRF_HEADER_NAME,
        ],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router)

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    return app


# Application instance
app = create_app()
