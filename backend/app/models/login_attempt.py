"""Per-account failed login counter."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class LoginAttempt(BaseModel):
    """Failed login attempts for one account since its last successful login.

    Only LoginThrottlePolicy creates, updates or deletes rows.
    """

    __tablename__ = "login_attempts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    attempts_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    blocked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<LoginAttempt user={self.user_id} attempts={self.attempts_count}>"
