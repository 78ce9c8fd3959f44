# CrewHub Models
from app.models.base import BaseModel
from app.models.login_attempt import LoginAttempt
from app.models.profile import Education, Social, UserHardSkill, UserSoftSkill
from app.models.user import User
from app.models.verification_token import TokenPurpose, VerificationToken

__all__ = [
    "BaseModel",
    "Education",
    "LoginAttempt",
    "Social",
    "TokenPurpose",
    "User",
    "UserHardSkill",
    "UserSoftSkill",
    "VerificationToken",
]
