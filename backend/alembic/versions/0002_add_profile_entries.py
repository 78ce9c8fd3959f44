"""Add member profile entries: skills, education and social links.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _owner() -> list[sa.Column]:
    return [
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    for table in ("user_hard_skills", "user_soft_skills"):
        op.create_table(
            table,
            *_owner(),
            sa.Column("name", sa.String(50), nullable=False),
            *_timestamps(),
            sa.UniqueConstraint("user_id", "name", name=f"uq_{table}_user_name"),
        )
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    op.create_table(
        "educations",
        *_owner(),
        sa.Column("institution", sa.String(100), nullable=False),
        sa.Column("specialization", sa.String(100), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_educations_user_id", "educations", ["user_id"])

    op.create_table(
        "socials",
        *_owner(),
        sa.Column("network", sa.String(50), nullable=False),
        sa.Column("url", sa.String(255), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "network", name="uq_socials_user_network"),
    )
    op.create_index("ix_socials_user_id", "socials", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_socials_user_id", table_name="socials")
    op.drop_table("socials")

    op.drop_index("ix_educations_user_id", table_name="educations")
    op.drop_table("educations")

    for table in ("user_soft_skills", "user_hard_skills"):
        op.drop_index(f"ix_{table}_user_id", table_name=table)
        op.drop_table(table)
