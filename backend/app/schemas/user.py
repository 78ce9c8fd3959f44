"""Pydantic schemas for the member directory and profile edits."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl

# Latin and Ukrainian letters, digits and the punctuation used in skill names
SKILL_PATTERN = r"^[A-Za-zА-Яа-яІіЇїЄєҐґ0-9 .'\-+_/]+$"
INSTITUTION_PATTERN = "^[A-Za-zА-Яа-яІіЇїЄєҐґ0-9 .'’,\"-]+$"
NETWORK_PATTERN = r"^[a-zA-Zа-яА-ЯґҐїЇєЄ' -]+$"
SOCIAL_URL_PATTERN = r"^https://\S+$"

SKILL_FIELD = {"min_length": 2, "max_length": 50, "pattern": SKILL_PATTERN}
INSTITUTION_FIELD = {"min_length": 2, "max_length": 100, "pattern": INSTITUTION_PATTERN}
SPECIALIZATION_FIELD = {"min_length": 2, "max_length": 100}
NETWORK_FIELD = {"min_length": 2, "max_length": 50, "pattern": NETWORK_PATTERN}
SOCIAL_URL_FIELD = {"min_length": 10, "max_length": 255, "pattern": SOCIAL_URL_PATTERN}


class UserCardResponse(BaseModel):
    """Public card shown in the member directory."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    avatar_url: str | None


class UserDirectoryResponse(BaseModel):
    items: list[UserCardResponse]
    total: int
    limit: int
    offset: int


class EmailExistsResponse(BaseModel):
    exists: bool


class UpdateProfileRequest(BaseModel):
    """Fields left out are not changed; remove_avatar clears the avatar.

    email may only be changed while the address is unverified.
    """

    first_name: str | None = Field(None, min_length=2, max_length=50)
    last_name: str | None = Field(None, min_length=2, max_length=50)
    email: EmailStr | None = None
    avatar_url: HttpUrl | None = None
    remove_avatar: bool = False


# --- Profile entries ---


class SkillCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., **SKILL_FIELD)


class SkillResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class EducationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    institution: str = Field(..., **INSTITUTION_FIELD)
    specialization: str = Field(..., **SPECIALIZATION_FIELD)


class EducationUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    institution: str | None = Field(None, **INSTITUTION_FIELD)
    specialization: str | None = Field(None, **SPECIALIZATION_FIELD)


class EducationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    institution: str
    specialization: str


class SocialCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    network: str = Field(..., **NETWORK_FIELD)
    url: str = Field(..., **SOCIAL_URL_FIELD)


class SocialUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    network: str | None = Field(None, **NETWORK_FIELD)
    url: str | None = Field(None, **SOCIAL_URL_FIELD)


class SocialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    network: str
    url: str


class ProfileResponse(UserCardResponse):
    """A member's card with everything listed on their profile page."""

    hard_skills: list[SkillResponse]
    soft_skills: list[SkillResponse]
    educations: list[EducationResponse]
    socials: list[SocialResponse]
