"""Account authentication: credentials, registration, email links."""

import hashlib
import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from functools import lru_cache
from urllib.parse import urlencode

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import ensure_utc, utc_now
from app.core.config import Settings, settings
from app.models.user import User
from app.models.verification_token import TokenPurpose, VerificationToken
from app.services.errors import (
    AuthError,
    EmailAlreadyRegisteredError,
    EmailAlreadyVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidVerificationTokenError,
    RateLimitedError,
    TokenStoreUnavailableError,
    UserInactiveError,
)
from app.services.login_throttle import LoginThrottlePolicy
from app.services.mail import (
    MailDeliveryError,
    Mailer,
    password_reset_message,
    redact_email,
    verification_message,
)
from app.services.users import UserRepository, normalize_email

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

__all__ = [
    "AuthError",
    "AuthService",
    "EmailAlreadyRegisteredError",
    "EmailAlreadyVerifiedError",
    "InvalidCredentialsError",
    "InvalidOrExpiredTokenError",
    "InvalidVerificationTokenError",
    "RateLimitedError",
    "TokenStoreUnavailableError",
    "UserInactiveError",
    "cleanup_expired_verification_tokens",
    "hash_password",
    "verify_password",
]


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerificationError, InvalidHashError):
        return False


@lru_cache
def _dummy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


def _digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


async def cleanup_expired_verification_tokens(session: AsyncSession) -> int:
    """Remove expired or consumed link tokens. Returns count removed."""
    result = await session.execute(
        delete(VerificationToken).where(
            (VerificationToken.expires_at < utc_now())
            | (VerificationToken.consumed_at.is_not(None))
        )
    )
    return result.rowcount or 0


class AuthService:
    """Credential checks and account lifecycle for one request."""

    def __init__(
        self,
        session: AsyncSession,
        throttle: LoginThrottlePolicy,
        mailer: Mailer,
        config: Settings = settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.users = UserRepository(session)
        self.throttle = throttle
        self.mailer = mailer
        self.config = config
        self.clock = clock

    async def authenticate(self, email: str, password: str) -> User:
        """Authenticate a user and return the user object.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration, and RateLimitedError
        while the account is locked.
        """
        user = await self.users.get_by_email(email)

        if user is None:
            # Spend the same time as a real check so unknown emails aren't detectable
            verify_password(password, _dummy_hash())
            raise InvalidCredentialsError("Email or password is incorrect")

        password_matches = verify_password(password, user.password_hash)
        await self.throttle.check_and_record(user.id, password_matches)

        if not user.is_active:
            raise UserInactiveError("User account is deactivated")

        if ph.check_needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
        user.last_login_at = self.clock()
        await self.session.flush()
        return user

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        ip: str | None = None,
    ) -> User:
        """Create an account and send its email verification link."""
        if await self.users.email_exists(email):
            raise EmailAlreadyRegisteredError("User with this email already exists")

        user = await self.users.create(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            registration_ip=ip,
        )
        logger.info(f"Registered user {user.id} ({redact_email(user.email)})")

        # Registration succeeds even when the mail server is down; the user
        # can ask for the link again.
        try:
            await self.send_verification_email(user, ip)
        except MailDeliveryError as e:
            logger.error(f"Error sending verification email: {e}")
        return user

    # --- Email links ---

    def _link(self, path: str, raw_token: str, email: str) -> str:
        params = urlencode({"token": raw_token, "email": email})
        return f"{self.config.frontend_url.rstrip('/')}/{path}?{params}"

    async def _issue_link_token(
        self,
        user: User,
        purpose: TokenPurpose,
        lifetime: timedelta,
        ip: str | None,
    ) -> str:
        """Create a fresh link token, replacing older unused ones of the same kind."""
        await self.session.execute(
            delete(VerificationToken).where(
                VerificationToken.user_id == user.id,
                VerificationToken.purpose == purpose.value,
                VerificationToken.consumed_at.is_(None),
            )
        )
        raw_token = secrets.token_urlsafe(32)
        self.session.add(
            VerificationToken(
                user_id=user.id,
                purpose=purpose.value,
                token_hash=_digest(raw_token),
                expires_at=self.clock() + lifetime,
                requested_ip=ip,
            )
        )
        await self.session.flush()
        return raw_token

    async def _consume_link_token(self, user: User, purpose: TokenPurpose, raw_token: str) -> None:
        result = await self.session.execute(
            select(VerificationToken).where(
                VerificationToken.token_hash == _digest(raw_token),
                VerificationToken.user_id == user.id,
                VerificationToken.purpose == purpose.value,
            )
        )
        record = result.scalar_one_or_none()
        now = self.clock()
        if (
            record is None
            or record.consumed_at is not None
            or ensure_utc(record.expires_at) <= now
        ):
            raise InvalidVerificationTokenError("Link is invalid or has expired")
        record.consumed_at = now
        await self.session.flush()

    async def send_verification_email(self, user: User, ip: str | None = None) -> None:
        if user.is_verified:
            raise EmailAlreadyVerifiedError("Email is already verified")
        raw_token = await self._issue_link_token(
            user,
            TokenPurpose.EMAIL_VERIFICATION,
            timedelta(hours=self.config.email_verification_expire_hours),
            ip,
        )
        url = self._link("verify-email", raw_token, user.email)
        await self.mailer.send(verification_message(user.email, url, self.config.app_name))

    async def change_unverified_email(
        self, user: User, new_email: str, ip: str | None = None
    ) -> User:
        """Correct a mistyped address before it has been confirmed.

        Links sent to the old address stop working and a fresh one goes to
        the new address.
        """
        if user.is_verified:
            raise EmailAlreadyVerifiedError("Email can only be changed before it is verified")
        new_email = normalize_email(new_email)
        if new_email == user.email:
            return user
        if await self.users.email_exists(new_email):
            raise EmailAlreadyRegisteredError("User with this email already exists")

        old_email = user.email
        user.email = new_email
        await self.session.execute(
            delete(VerificationToken).where(
                VerificationToken.user_id == user.id,
                VerificationToken.purpose == TokenPurpose.EMAIL_VERIFICATION.value,
            )
        )
        await self.session.flush()
        logger.info(
            f"Email for user {user.id} changed from {redact_email(old_email)} "
            f"to {redact_email(new_email)}"
        )

        try:
            await self.send_verification_email(user, ip)
        except MailDeliveryError as e:
            logger.error(f"Error sending verification email: {e}")
        return user

    async def verify_email(self, email: str, raw_token: str) -> User:
        user = await self.users.get_by_email(email)
        if user is None:
            raise InvalidVerificationTokenError("Link is invalid or has expired")
        await self._consume_link_token(user, TokenPurpose.EMAIL_VERIFICATION, raw_token)
        user.is_verified = True
        await self.session.flush()
        logger.info(f"Email verified for user {user.id}")
        return user

    async def request_password_reset(self, email: str, ip: str | None = None) -> None:
        """Send a reset link if the account exists; silent otherwise."""
        user = await self.users.get_by_email(email)
        if user is None or not user.is_active:
            logger.info(f"Password reset requested for unknown account {redact_email(email)}")
            return
        raw_token = await self._issue_link_token(
            user,
            TokenPurpose.PASSWORD_RESET,
            timedelta(minutes=self.config.password_reset_expire_minutes),
            ip,
        )
        url = self._link("reset-password/new-password", raw_token, user.email)
        await self.mailer.send(
            password_reset_message(
                user.email, url, self.config.app_name, self.config.password_reset_expire_minutes
            )
        )

    async def reset_password(self, email: str, raw_token: str, new_password: str) -> User:
        """Set a new password from a reset link and lift any login lockout."""
        user = await self.users.get_by_email(email)
        if user is None:
            raise InvalidVerificationTokenError("Link is invalid or has expired")
        await self._consume_link_token(user, TokenPurpose.PASSWORD_RESET, raw_token)
        user.password_hash = hash_password(new_password)
        await self.throttle.reset(user.id)
        await self.session.flush()
        logger.info(f"Password reset for user {user.id}")
        return user

    async def get_active_user(self, user_id: uuid.UUID | str) -> User:
        """User named by a verified token claim."""
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise InvalidOrExpiredTokenError("User not found")
        if not user.is_active:
            raise UserInactiveError("User account is deactivated")
        return user
