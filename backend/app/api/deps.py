"""Dependency providers for routers.

Services receive their database session, secrets, denylist and mailer
here, per request, instead of reaching for module-level singletons.
"""

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import get_db, settings
from app.models.user import User
from app.services.auth import (
    AuthService,
    InvalidOrExpiredTokenError,
    TokenStoreUnavailableError,
    UserInactiveError,
)
from app.services.login_throttle import LoginThrottlePolicy, SqlLoginAttemptStore
from app.services.mail import Mailer, build_mailer
from app.services.session_tokens import ACCESS_TOKEN_COOKIE, SessionTokenService
from app.services.token_denylist import TokenDenylist

logger = logging.getLogger(__name__)


def get_token_denylist(request: Request) -> TokenDenylist:
    """Denylist created with the application (Redis, or in-process without it)."""
    return request.app.state.token_denylist


def get_session_token_service(
    denylist: TokenDenylist = Depends(get_token_denylist),
) -> SessionTokenService:
    return SessionTokenService(settings, denylist)


def get_login_throttle(db: AsyncSession = Depends(get_db)) -> LoginThrottlePolicy:
    return LoginThrottlePolicy(SqlLoginAttemptStore(db))


@lru_cache
def get_mailer() -> Mailer:
    return build_mailer(settings)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    throttle: LoginThrottlePolicy = Depends(get_login_throttle),
    mailer: Mailer = Depends(get_mailer),
) -> AuthService:
    return AuthService(db, throttle, mailer)


def extract_access_token(request: Request) -> str | None:
    """Access token from the session cookie, or an Authorization: Bearer header."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    tokens: SessionTokenService = Depends(get_session_token_service),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Session guard: reject with 401 or return the signed-in user.

    A denylisted token is treated exactly like an expired one. When the
    denylist cannot be reached the request fails with 503.
    """
    token = extract_access_token(request)
    if not token:
        raise _unauthorized("Authentication required")

    try:
        user_id = tokens.verify_access_token(token)
        if await tokens.is_revoked(token):
            logger.warning(
                f"Revoked token used for: {request.method} {request.url.path}",
                extra={"path": request.url.path, "user_id": user_id},
            )
            raise InvalidOrExpiredTokenError("Token has been revoked")
        return await auth_service.get_active_user(user_id)
    except TokenStoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    except (InvalidOrExpiredTokenError, UserInactiveError) as e:
        raise _unauthorized(str(e)) from e
