"""Member directory and profile API endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_auth_service, get_current_user
from app.core import get_db
from app.core.request_utils import get_client_ip
from app.models.user import User
from app.schemas.auth import UserResponse
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
from app.services.auth import (
    AuthService,
    EmailAlreadyRegisteredError,
    EmailAlreadyVerifiedError,
)
from app.services.profile import DuplicateProfileEntryError, ProfileService
from app.services.users import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def get_user_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


async def _profile_response(user: User, profiles: ProfileService) -> ProfileResponse:
    entries = await profiles.get_entries(user.id)
    return ProfileResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar_url=user.avatar_url,
        hard_skills=[SkillResponse.model_validate(s) for s in entries.hard_skills],
        soft_skills=[SkillResponse.model_validate(s) for s in entries.soft_skills],
        educations=[EducationResponse.model_validate(e) for e in entries.educations],
        socials=[SocialResponse.model_validate(s) for s in entries.socials],
    )


def _conflict(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _entry_not_found(kind: str, entry_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{kind} {entry_id} not found",
    )


@router.get("/check-email", response_model=EmailExistsResponse)
async def check_email(
    email: EmailStr = Query(..., description="Address to look up"),
    users: UserRepository = Depends(get_user_repository),
) -> EmailExistsResponse:
    """Tell the registration form whether an address is already taken."""
    return EmailExistsResponse(exists=await users.email_exists(email))


@router.get("", response_model=UserDirectoryResponse)
async def list_members(
    search: str | None = Query(None, max_length=100, description="Match on first or last name"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _: User = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
) -> UserDirectoryResponse:
    """List active members, ordered by name."""
    members, total = await users.list_members(search=search, limit=limit, offset=offset)
    return UserDirectoryResponse(
        items=[UserCardResponse.model_validate(m) for m in members],
        total=total,
        limit=limit,
        offset=offset,
    )


# --- Own profile ---


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UpdateProfileRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Update the signed-in user's name or avatar.

    An unverified user may also correct their email; a new verification
    link is sent to the new address.
    """
    if data.email is not None:
        try:
            await auth_service.change_unverified_email(
                current_user, data.email, ip=get_client_ip(request)
            )
        except EmailAlreadyVerifiedError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
        except EmailAlreadyRegisteredError as e:
            raise _conflict(e) from e

    user = await profiles.update_profile(
        current_user,
        first_name=data.first_name,
        last_name=data.last_name,
        avatar_url=str(data.avatar_url) if data.avatar_url else None,
        remove_avatar=data.remove_avatar,
    )
    logger.info(f"Profile updated for user {user.id}")
    return UserResponse.model_validate(user)


@router.get("/me/profile", response_model=ProfileResponse)
async def get_my_profile(
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    return await _profile_response(current_user, profiles)


@router.post("/me/hard-skills", response_model=SkillResponse, status_code=201)
async def add_hard_skill(
    data: SkillCreate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> SkillResponse:
    try:
        skill = await profiles.add_hard_skill(current_user.id, data.name)
    except DuplicateProfileEntryError as e:
        raise _conflict(e) from e
    return SkillResponse.model_validate(skill)


@router.delete("/me/hard-skills/{skill_id}", status_code=204)
async def delete_hard_skill(
    skill_id: UUID,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> None:
    if not await profiles.delete_hard_skill(current_user.id, skill_id):
        raise _entry_not_found("Skill", skill_id)


@router.post("/me/soft-skills", response_model=SkillResponse, status_code=201)
async def add_soft_skill(
    data: SkillCreate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> SkillResponse:
    try:
        skill = await profiles.add_soft_skill(current_user.id, data.name)
    except DuplicateProfileEntryError as e:
        raise _conflict(e) from e
    return SkillResponse.model_validate(skill)


@router.delete("/me/soft-skills/{skill_id}", status_code=204)
async def delete_soft_skill(
    skill_id: UUID,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> None:
    if not await profiles.delete_soft_skill(current_user.id, skill_id):
        raise _entry_not_found("Skill", skill_id)


@router.post("/me/educations", response_model=EducationResponse, status_code=201)
async def add_education(
    data: EducationCreate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> EducationResponse:
    education = await profiles.add_education(
        current_user.id, data.institution, data.specialization
    )
    return EducationResponse.model_validate(education)


@router.patch("/me/educations/{education_id}", response_model=EducationResponse)
async def update_education(
    education_id: UUID,
    data: EducationUpdate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> EducationResponse:
    education = await profiles.update_education(
        current_user.id,
        education_id,
        institution=data.institution,
        specialization=data.specialization,
    )
    if education is None:
        raise _entry_not_found("Education", education_id)
    return EducationResponse.model_validate(education)


@router.delete("/me/educations/{education_id}", status_code=204)
async def delete_education(
    education_id: UUID,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> None:
    if not await profiles.delete_education(current_user.id, education_id):
        raise _entry_not_found("Education", education_id)


@router.post("/me/socials", response_model=SocialResponse, status_code=201)
async def add_social(
    data: SocialCreate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> SocialResponse:
    try:
        social = await profiles.add_social(current_user.id, data.network, data.url)
    except DuplicateProfileEntryError as e:
        raise _conflict(e) from e
    return SocialResponse.model_validate(social)


@router.patch("/me/socials/{social_id}", response_model=SocialResponse)
async def update_social(
    social_id: UUID,
    data: SocialUpdate,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> SocialResponse:
    try:
        social = await profiles.update_social(
            current_user.id, social_id, network=data.network, url=data.url
        )
    except DuplicateProfileEntryError as e:
        raise _conflict(e) from e
    if social is None:
        raise _entry_not_found("Social link", social_id)
    return SocialResponse.model_validate(social)


@router.delete("/me/socials/{social_id}", status_code=204)
async def delete_social(
    social_id: UUID,
    current_user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> None:
    if not await profiles.delete_social(current_user.id, social_id):
        raise _entry_not_found("Social link", social_id)


# --- Other members ---


async def _get_active_member(user_id: UUID, users: UserRepository) -> User:
    user = await users.get_by_id(user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        )
    return user


@router.get("/{user_id}", response_model=UserCardResponse)
async def get_member(
    user_id: UUID,
    _: User = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
) -> UserCardResponse:
    """Get a member's card by ID."""
    return UserCardResponse.model_validate(await _get_active_member(user_id, users))


@router.get("/{user_id}/profile", response_model=ProfileResponse)
async def get_member_profile(
    user_id: UUID,
    _: User = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Get a member's full profile page by ID."""
    return await _profile_response(await _get_active_member(user_id, users), profiles)
