"""Per-account login throttling with escalating lockouts.

Each account that fails a login gets a LoginAttempt row. Once the failure
count crosses a threshold the account is locked for a fixed window; the
window grows with the count. A successful login deletes the row.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import ensure_utc, utc_now
from app.models.login_attempt import LoginAttempt
from app.services.errors import InvalidCredentialsError, RateLimitedError

logger = logging.getLogger(__name__)

# Highest threshold first; the first match wins
LOCKOUT_THRESHOLDS: tuple[tuple[int, timedelta], ...] = (
    (15, timedelta(days=365)),
    (10, timedelta(minutes=60)),
    (5, timedelta(minutes=15)),
)

# Counts at which the failing request itself is answered with RateLimitedError
RATE_LIMITED_COUNTS = frozenset(count for count, _ in LOCKOUT_THRESHOLDS)


def lockout_for(attempts_count: int) -> timedelta | None:
    """Lockout window for a failure count, or None below the first threshold."""
    for threshold, window in LOCKOUT_THRESHOLDS:
        if attempts_count >= threshold:
            return window
    return None


class LoginAttemptStore(Protocol):
    async def get(self, user_id: uuid.UUID) -> LoginAttempt | None: ...

    async def create(self, user_id: uuid.UUID, attempts_count: int) -> LoginAttempt: ...

    async def save(self, record: LoginAttempt) -> None: ...

    async def delete(self, record: LoginAttempt) -> None: ...


class SqlLoginAttemptStore:
    """LoginAttempt persistence on the request's database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: uuid.UUID) -> LoginAttempt | None:
        result = await self.session.execute(
            select(LoginAttempt).where(LoginAttempt.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: uuid.UUID, attempts_count: int) -> LoginAttempt:
        record = LoginAttempt(user_id=user_id, attempts_count=attempts_count)
        self.session.add(record)
        await self.session.flush()
        return record

    async def save(self, record: LoginAttempt) -> None:
        await self.session.flush()

    async def delete(self, record: LoginAttempt) -> None:
        await self.session.delete(record)
        await self.session.flush()


class LoginThrottlePolicy:
    """Decides whether a login may proceed and records the outcome."""

    def __init__(
        self,
        store: LoginAttemptStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.clock = clock

    def _is_blocked(self, record: LoginAttempt, now: datetime) -> bool:
        return record.blocked_until is not None and ensure_utc(record.blocked_until) > now

    async def check_and_record(self, user_id: uuid.UUID, password_matches: bool) -> None:
        """Apply the throttle to one login attempt.

        Returns normally when the attempt succeeds. Raises RateLimitedError
        while the account is locked (even for a correct password, and
        without counting the attempt) and when a failure lands exactly on a
        lockout threshold. Raises InvalidCredentialsError for every other
        failure.
        """
        now = self.clock()
        record = await self.store.get(user_id)

        if record is not None and self._is_blocked(record, now):
            logger.warning(
                f"Login attempt for locked account {user_id} "
                f"({record.attempts_count} failures)",
                extra={"user_id": str(user_id), "attempts_count": record.attempts_count},
            )
            raise RateLimitedError(record.attempts_count)

        if password_matches:
            if record is not None:
                await self.store.delete(record)
            return

        if record is None:
            await self.store.create(user_id, attempts_count=1)
            raise InvalidCredentialsError("Email or password is incorrect")

        attempts_count = record.attempts_count + 1
        record.attempts_count = attempts_count
        window = lockout_for(attempts_count)
        if window is not None:
            record.blocked_until = now + window
        await self.store.save(record)

        if attempts_count in RATE_LIMITED_COUNTS:
            logger.warning(
                f"Account {user_id} locked for {window} after {attempts_count} failed logins",
                extra={"user_id": str(user_id), "attempts_count": attempts_count},
            )
            raise RateLimitedError(attempts_count)
        raise InvalidCredentialsError("Email or password is incorrect")

    async def reset(self, user_id: uuid.UUID) -> None:
        """Forget all recorded failures for an account (e.g. after a password reset)."""
        record = await self.store.get(user_id)
        if record is not None:
            await self.store.delete(record)
