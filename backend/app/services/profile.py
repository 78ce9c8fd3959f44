"""Edits to a member's own profile: name, avatar and profile entries.

Skills and socials are unique per member, compared case-insensitively.
Every lookup by entry id is scoped to its owner.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile import Education, Social, UserHardSkill, UserSoftSkill
from app.models.user import User

logger = logging.getLogger(__name__)

Entry = TypeVar("Entry", UserHardSkill, UserSoftSkill, Education, Social)
Skill = TypeVar("Skill", UserHardSkill, UserSoftSkill)


class DuplicateProfileEntryError(Exception):
    """The member already lists this skill or network."""

    pass


@dataclass
class ProfileEntries:
    hard_skills: list[UserHardSkill] = field(default_factory=list)
    soft_skills: list[UserSoftSkill] = field(default_factory=list)
    educations: list[Education] = field(default_factory=list)
    socials: list[Social] = field(default_factory=list)


class ProfileService:
    """Profile edits for one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def update_profile(
        self,
        user: User,
        first_name: str | None = None,
        last_name: str | None = None,
        avatar_url: str | None = None,
        remove_avatar: bool = False,
    ) -> User:
        if first_name is not None:
            user.first_name = first_name.strip()
        if last_name is not None:
            user.last_name = last_name.strip()
        if remove_avatar:
            user.avatar_url = None
        elif avatar_url is not None:
            user.avatar_url = avatar_url
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def get_entries(self, user_id: uuid.UUID) -> ProfileEntries:
        async def _list(model, *order_by):
            result = await self.session.execute(
                select(model).where(model.user_id == user_id).order_by(*order_by)
            )
            return list(result.scalars().all())

        return ProfileEntries(
            hard_skills=await _list(UserHardSkill, UserHardSkill.name),
            soft_skills=await _list(UserSoftSkill, UserSoftSkill.name),
            educations=await _list(Education, Education.created_at, Education.id),
            socials=await _list(Social, Social.network),
        )

    # --- Skills ---

    async def add_hard_skill(self, user_id: uuid.UUID, name: str) -> UserHardSkill:
        return await self._add_skill(UserHardSkill, user_id, name)

    async def delete_hard_skill(self, user_id: uuid.UUID, skill_id: uuid.UUID) -> bool:
        return await self._delete_owned(UserHardSkill, user_id, skill_id)

    async def add_soft_skill(self, user_id: uuid.UUID, name: str) -> UserSoftSkill:
        return await self._add_skill(UserSoftSkill, user_id, name)

    async def delete_soft_skill(self, user_id: uuid.UUID, skill_id: uuid.UUID) -> bool:
        return await self._delete_owned(UserSoftSkill, user_id, skill_id)

    async def _add_skill(self, model: type[Skill], user_id: uuid.UUID, name: str) -> Skill:
        name = name.strip()
        existing = await self.session.execute(
            select(model.id).where(
                model.user_id == user_id,
                func.lower(model.name) == name.lower(),
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateProfileEntryError(f"Skill '{name}' is already on your profile")
        return await self._save(model(user_id=user_id, name=name))

    # --- Education ---

    async def add_education(
        self, user_id: uuid.UUID, institution: str, specialization: str
    ) -> Education:
        return await self._save(
            Education(
                user_id=user_id,
                institution=institution.strip(),
                specialization=specialization.strip(),
            )
        )

    async def update_education(
        self,
        user_id: uuid.UUID,
        education_id: uuid.UUID,
        institution: str | None = None,
        specialization: str | None = None,
    ) -> Education | None:
        education = await self._get_owned(Education, user_id, education_id)
        if education is None:
            return None
        if institution is not None:
            education.institution = institution.strip()
        if specialization is not None:
            education.specialization = specialization.strip()
        return await self._save(education)

    async def delete_education(self, user_id: uuid.UUID, education_id: uuid.UUID) -> bool:
        return await self._delete_owned(Education, user_id, education_id)

    # --- Socials ---

    async def add_social(self, user_id: uuid.UUID, network: str, url: str) -> Social:
        network = network.strip()
        await self._check_network_free(user_id, network)
        return await self._save(Social(user_id=user_id, network=network, url=url.strip()))

    async def update_social(
        self,
        user_id: uuid.UUID,
        social_id: uuid.UUID,
        network: str | None = None,
        url: str | None = None,
    ) -> Social | None:
        social = await self._get_owned(Social, user_id, social_id)
        if social is None:
            return None
        if network is not None:
            network = network.strip()
            await self._check_network_free(user_id, network, exclude_id=social.id)
            social.network = network
        if url is not None:
            social.url = url.strip()
        return await self._save(social)

    async def delete_social(self, user_id: uuid.UUID, social_id: uuid.UUID) -> bool:
        return await self._delete_owned(Social, user_id, social_id)

    async def _check_network_free(
        self, user_id: uuid.UUID, network: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        query = select(Social.id).where(
            Social.user_id == user_id,
            func.lower(Social.network) == network.lower(),
        )
        if exclude_id is not None:
            query = query.where(Social.id != exclude_id)
        if (await self.session.execute(query)).scalar_one_or_none() is not None:
            raise DuplicateProfileEntryError(f"A {network} link is already on your profile")

    # --- Shared ---

    async def _get_owned(
        self, model: type[Entry], user_id: uuid.UUID, entry_id: uuid.UUID
    ) -> Entry | None:
        result = await self.session.execute(
            select(model).where(model.id == entry_id, model.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _delete_owned(
        self, model: type[Entry], user_id: uuid.UUID, entry_id: uuid.UUID
    ) -> bool:
        entry = await self._get_owned(model, user_id, entry_id)
        if entry is None:
            return False
        await self.session.delete(entry)
        await self.session.flush()
        logger.info(f"Removed {model.__tablename__} entry {entry_id} for user {user_id}")
        return True

    async def _save(self, entry: Entry) -> Entry:
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry
