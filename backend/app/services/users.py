"""User lookups and the member directory."""

import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def parse_user_id(user_id: uuid.UUID | str) -> uuid.UUID | None:
    """UUID from a token claim, or None when the claim is malformed."""
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(user_id)
    except (ValueError, AttributeError):
        return None


class UserRepository:
    """Queries over the users table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: uuid.UUID | str) -> User | None:
        parsed = parse_user_id(user_id)
        if parsed is None:
            return None
        return await self.session.get(User, parsed)

    async def email_exists(self, email: str) -> bool:
        result = await self.session.execute(
            select(User.id).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none() is not None

    async def create(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        registration_ip: str | None = None,
    ) -> User:
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            registration_ip=registration_ip,
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def list_members(
        self,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[User], int]:
        """Active members ordered by name, with the total count before paging."""
        query = select(User).where(User.is_active.is_(True))
        if search:
            term = search.strip()
            query = query.where(
                or_(
                    User.first_name.icontains(term, autoescape=True),
                    User.last_name.icontains(term, autoescape=True),
                )
            )

        total_result = await self.session.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = total_result.scalar() or 0

        result = await self.session.execute(
            query.order_by(User.first_name, User.last_name, User.id).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total

