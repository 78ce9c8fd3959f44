"""Profile entries a member keeps on their page: skills, education, socials."""

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class UserHardSkill(BaseModel):
    """A technical skill (JavaScript, Figma, SQL)."""

    __tablename__ = "user_hard_skills"

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_user_hard_skills_user_name"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<UserHardSkill {self.name}>"


class UserSoftSkill(BaseModel):
    """A soft skill (teamwork, time management)."""

    __tablename__ = "user_soft_skills"

    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_user_soft_skills_user_name"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<UserSoftSkill {self.name}>"


class Education(BaseModel):
    """An institution the member studied at and the role they trained for."""

    __tablename__ = "educations"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    institution: Mapped[str] = mapped_column(String(100), nullable=False)
    specialization: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Education {self.institution}>"


class Social(BaseModel):
    """A link to the member's profile on another network. One per network."""

    __tablename__ = "socials"

    __table_args__ = (UniqueConstraint("user_id", "network", name="uq_socials_user_network"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    network: Mapped[str] = mapped_column(String(50), nullable=False)
    url: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Social {self.network}>"
