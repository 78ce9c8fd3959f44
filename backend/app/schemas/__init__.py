# CrewHub Pydantic Schemas
from app.schemas.auth import (
    CsrfTokenResponse,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    RateLimitedResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
)
from app.schemas.user import (
    EducationCreate,
    EducationResponse,
    EducationUpdate,
    EmailExistsResponse,
    ProfileResponse,
    SkillCreate,
    SkillResponse,
    SocialCreate,
    SocialResponse,
    SocialUpdate,
    UpdateProfileRequest,
    UserCardResponse,
    UserDirectoryResponse,
)

__all__ = [
    "CsrfTokenResponse",
    "EducationCreate",
    "EducationResponse",
    "EducationUpdate",
    "EmailExistsResponse",
    "LoginRequest",
    "MessageResponse",
    "PasswordResetRequest",
    "ProfileResponse",
    "RateLimitedResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "SkillCreate",
    "SkillResponse",
    "SocialCreate",
    "SocialResponse",
    "SocialUpdate",
    "UpdateProfileRequest",
    "UserCardResponse",
    "UserDirectoryResponse",
    "UserResponse",
    "VerifyEmailRequest",
]
