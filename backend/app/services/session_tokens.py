"""Session token lifecycle: issue, verify, rotate and revoke JWT cookies.

Access and refresh tokens are signed with different secrets, so a refresh
token can never be presented as an access token or the other way round.
A token is Active from issue until it expires; logout moves it to Revoked
by putting it on the denylist for the rest of its lifetime.
"""

import enum
import logging
import math
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import jwt
from fastapi import Response
from jwt.exceptions import InvalidTokenError, PyJWTError
from redis.exceptions import RedisError

from app.core.clock import utc_now
from app.core.config import Settings
from app.services.errors import InvalidOrExpiredTokenError, TokenStoreUnavailableError
from app.services.token_denylist import TokenDenylist

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class RevocationResult(str, enum.Enum):
    """Outcome of a best-effort logout."""

    # Every presented token is denylisted or had already expired
    FULLY_REVOKED = "fully_revoked"
    # A token could not be decoded or stored; cookies were cleared anyway
    PARTIALLY_REVOKED = "partially_revoked"


class SessionTokenService:
    """Issues and revokes session credentials for one configuration."""

    def __init__(
        self,
        settings: Settings,
        denylist: TokenDenylist,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.denylist = denylist
        self.clock = clock

    @property
    def access_lifetime(self) -> timedelta:
        return timedelta(minutes=self.settings.jwt_access_token_expire_minutes)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self.settings.jwt_refresh_token_expire_days)

    # --- Issue ---

    def _sign(
        self, user_id: str, token_type: str, secret: str, lifetime: timedelta
    ) -> tuple[str, datetime]:
        issued_at = self.clock()
        expires_at = issued_at + lifetime
        payload = {
            "sub": user_id,
            "id": user_id,
            "type": token_type,
            # Unique per token so two logins in the same second never collide
            "jti": secrets.token_hex(16),
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, secret, algorithm=self.settings.jwt_algorithm)
        return str(token), expires_at

    def issue_access_token(self, user_id: uuid.UUID | str) -> tuple[str, datetime]:
        return self._sign(
            str(user_id), "access", self.settings.jwt_secret_key, self.access_lifetime
        )

    def issue_refresh_token(self, user_id: uuid.UUID | str) -> tuple[str, datetime]:
        return self._sign(
            str(user_id),
            "refresh",
            self.settings.jwt_refresh_secret_key,
            self.refresh_lifetime,
        )

    def issue_token_pair(self, user_id: uuid.UUID | str) -> TokenPair:
        """Create an access/refresh pair for a user. No side effects."""
        access_token, access_expires_at = self.issue_access_token(user_id)
        refresh_token, refresh_expires_at = self.issue_refresh_token(user_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    # --- Cookies ---

    def _set_cookie(self, response: Response, name: str, value: str, expires_at: datetime) -> None:
        max_age = max(int((expires_at - self.clock()).total_seconds()), 0)
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            expires=expires_at,
            path="/",
            domain=self.settings.cookie_domain,
            secure=self.settings.cookie_secure,
            httponly=True,
            samesite="lax",
        )

    def attach_access_token(self, response: Response, token: str, expires_at: datetime) -> None:
        self._set_cookie(response, ACCESS_TOKEN_COOKIE, token, expires_at)

    def attach_to_response(self, response: Response, token_pair: TokenPair) -> None:
        """Store both tokens as http-only cookies expiring with the tokens."""
        self._set_cookie(
            response, REFRESH_TOKEN_COOKIE, token_pair.refresh_token, token_pair.refresh_expires_at
        )
        self._set_cookie(
            response, ACCESS_TOKEN_COOKIE, token_pair.access_token, token_pair.access_expires_at
        )

    def clear_cookies(self, response: Response) -> None:
        for name in (REFRESH_TOKEN_COOKIE, ACCESS_TOKEN_COOKIE):
            response.delete_cookie(
                name,
                path="/",
                domain=self.settings.cookie_domain,
                secure=self.settings.cookie_secure,
                httponly=True,
                samesite="lax",
            )

    # --- Verify ---

    def _verify(self, token: str, secret: str, token_type: str) -> str:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["exp", "sub"]},
            )
        except PyJWTError as e:
            raise InvalidOrExpiredTokenError(f"Invalid or expired {token_type} token") from e

        if payload.get("type") != token_type:
            raise InvalidOrExpiredTokenError(f"Invalid or expired {token_type} token")
        return str(payload["sub"])

    def verify_access_token(self, token: str) -> str:
        """Return the user id of a valid access token."""
        return self._verify(token, self.settings.jwt_secret_key, "access")

    def verify_refresh_token(self, token: str) -> str:
        """Return the user id of a valid refresh token.

        Signature, expiry and type failures are reported the same way.
        """
        return self._verify(token, self.settings.jwt_refresh_secret_key, "refresh")

    async def is_revoked(self, token: str) -> bool:
        try:
            return await self.denylist.contains(token)
        except (RedisError, OSError) as e:
            logger.error(f"Token denylist lookup failed: {e}")
            raise TokenStoreUnavailableError("Session store is unavailable") from e

    async def rotate_access_token(self, refresh_token: str | None, response: Response) -> str:
        """Mint a new access cookie from a refresh token.

        The refresh token itself is not rotated and stays valid until it
        expires or is revoked.
        """
        if not refresh_token:
            raise InvalidOrExpiredTokenError("Invalid or expired refresh token")
        user_id = self.verify_refresh_token(refresh_token)
        if await self.is_revoked(refresh_token):
            raise InvalidOrExpiredTokenError("Invalid or expired refresh token")

        access_token, expires_at = self.issue_access_token(user_id)
        self.attach_access_token(response, access_token, expires_at)
        return access_token

    # --- Revoke ---

    def _remaining_seconds(self, token: str) -> int:
        """Seconds until a token's exp claim, read without verifying the signature."""
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
            algorithms=[self.settings.jwt_algorithm],
        )
        exp = payload.get("exp")
        if exp is None:
            return 0
        if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not math.isfinite(exp):
            raise InvalidTokenError("exp claim is not a timestamp")
        # Nothing this service signs outlives the refresh lifetime
        ceiling = int(self.refresh_lifetime.total_seconds())
        return min(int(exp) - int(self.clock().timestamp()), ceiling)

    async def revoke(
        self,
        response: Response,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> RevocationResult:
        """Denylist the presented tokens and clear both cookies.

        Never raises: a token that cannot be decoded or stored downgrades the
        result to PARTIALLY_REVOKED, and the cookies are cleared regardless.
        """
        result = RevocationResult.FULLY_REVOKED
        for token in (access_token, refresh_token):
            if not token:
                continue
            try:
                remaining = self._remaining_seconds(token)
                if remaining > 0:
                    await self.denylist.add(token, remaining)
            except (PyJWTError, RedisError, OSError) as e:
                logger.warning(f"Could not revoke session token: {e}")
                result = RevocationResult.PARTIALLY_REVOKED

        self.clear_cookies(response)
        return result
