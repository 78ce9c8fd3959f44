"""Health check endpoint with database and token store connectivity.

Accessible without authentication so load balancers can probe it.
"""

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.deps import get_token_denylist
from app.core import check_db_connection, settings
from app.services.token_denylist import TokenDenylist

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    token_store: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        status.HTTP_200_OK: {"description": "Service is healthy"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_check(
    response: Response,
    denylist: TokenDenylist = Depends(get_token_denylist),
) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 if either the database or the token denylist is unreachable,
    since logout cannot revoke sessions without the latter.
    """
    db_healthy = await check_db_connection()
    store_healthy = await denylist.ping()

    if not (db_healthy and store_healthy):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_healthy and store_healthy else "unhealthy",
        version=settings.app_version,
        database="connected" if db_healthy else "disconnected",
        token_store="connected" if store_healthy else "disconnected",
    )
