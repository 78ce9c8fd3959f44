"""Pydantic schemas for authentication API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

NAME_FIELD = {"min_length": 2, "max_length": 50}
PASSWORD_FIELD = {
    "min_length": 8,
    "max_length": 20,
    "description": "Password (8-20 characters)",
}


class CsrfTokenResponse(BaseModel):
    """Token to echo in the X-CSRF-Token header."""

    csrf_token: str


class LoginRequest(BaseModel):
    """Request for login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RegisterRequest(BaseModel):
    """Request for account registration."""

    first_name: str = Field(..., **NAME_FIELD)
    last_name: str = Field(..., **NAME_FIELD)
    email: EmailStr
    password: str = Field(..., **PASSWORD_FIELD)


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1)
    password: str = Field(..., **PASSWORD_FIELD)


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class RateLimitedResponse(BaseModel):
    """Body of a 429 from /auth/login."""

    detail: str
    attempts_count: int


class UserResponse(BaseModel):
    """The signed-in user's own account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    avatar_url: str | None
    is_verified: bool
    created_at: datetime
