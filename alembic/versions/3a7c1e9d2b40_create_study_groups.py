"""create profiles, study_groups and group_members

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2026-10-17 09:12:44.508113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '3a7c1e9d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("faculty", sa.String(120), nullable=True),
        sa.Column("course", sa.String(120), nullable=True),
        sa.Column("year_of_study", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    op.create_table(
        "study_groups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("subject", sa.String(50), nullable=False),
        sa.Column("faculty", sa.String(120), nullable=True),
        sa.Column("course", sa.String(120), nullable=True),
        sa.Column("year_of_study", sa.Integer(), nullable=True),
        sa.Column("creator_id", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("max_members", sa.Integer(), server_default=sa.text("10"), nullable=False),
        sa.Column("is_private", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("invite_code", sa.String(32), nullable=False),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        sa.Column("is_scheduled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("meeting_times", sa.JSON().with_variant(JSONB(), "postgresql"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("status IN ('active','scheduled','archived')", name="ck_study_groups_status"),
        sa.CheckConstraint("max_members >= 1", name="ck_study_groups_max_members"),
        sa.CheckConstraint(
            "scheduled_start IS NULL OR scheduled_end IS NULL OR scheduled_start < scheduled_end",
            name="ck_study_groups_schedule_window",
        ),
    )
    op.create_index("ix_study_groups_invite_code", "study_groups", ["invite_code"], unique=True)
    op.create_index("ix_study_groups_subject", "study_groups", ["subject"])
    op.create_index("ix_study_groups_creator_id", "study_groups", ["creator_id"])
    op.create_index("ix_study_groups_status_created", "study_groups", ["status", "created_at"])

    op.create_table(
        "group_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "group_id",
            sa.Uuid(),
            sa.ForeignKey("study_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("role", sa.String(20), server_default="member", nullable=False),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        sa.Column("invited_by", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('creator','admin','member')", name="ck_group_members_role"),
        sa.CheckConstraint("status IN ('active','left','removed')", name="ck_group_members_status"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])
    op.create_index("ix_group_members_group_status", "group_members", ["group_id", "status"])
    op.create_index(
        "uq_group_members_active_pair",
        "group_members",
        ["group_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index(
        "uq_group_members_creator",
        "group_members",
        ["group_id"],
        unique=True,
        postgresql_where=sa.text("role = 'creator'"),
        sqlite_where=sa.text("role = 'creator'"),
    )


def downgrade():
    op.drop_index("uq_group_members_creator", table_name="group_members")
    op.drop_index("uq_group_members_active_pair", table_name="group_members")
    op.drop_index("ix_group_members_group_status", table_name="group_members")
    op.drop_index("ix_group_members_user_id", table_name="group_members")
    op.drop_index("ix_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")

    op.drop_index("ix_study_groups_status_created", table_name="study_groups")
    op.drop_index("ix_study_groups_creator_id", table_name="study_groups")
    op.drop_index("ix_study_groups_subject", table_name="study_groups")
    op.drop_index("ix_study_groups_invite_code", table_name="study_groups")
    op.drop_table("study_groups")

    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_table("profiles")
