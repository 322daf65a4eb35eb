from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyhub.db.base_class import Base


class GroupMembership(Base):
    __tablename__ = "group_members"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)

    group_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid(),
        sa.ForeignKey("study_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False, index=True)

    # "creator" | "admin" | "member"
    role: Mapped[str] = mapped_column(sa.String(20), nullable=False, server_default="member")
    # "active" | "left" | "removed"
    status: Mapped[str] = mapped_column(sa.String(20), nullable=False, server_default="active")

    invited_by: Mapped[uuid.UUID | None] = mapped_column(sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=True)

    joined_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
    left_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        sa.CheckConstraint("role IN ('creator','admin','member')", name="ck_group_members_role"),
        sa.CheckConstraint("status IN ('active','left','removed')", name="ck_group_members_status"),
        # History rows are kept on leave/remove; only one row per pair may be active.
        sa.Index(
            "uq_group_members_active_pair",
            "group_id",
            "user_id",
            unique=True,
            postgresql_where=sa.text("status = 'active'"),
            sqlite_where=sa.text("status = 'active'"),
        ),
        sa.Index(
            "uq_group_members_creator",
            "group_id",
            unique=True,
            postgresql_where=sa.text("role = 'creator'"),
            sqlite_where=sa.text("role = 'creator'"),
        ),
        sa.Index("ix_group_members_group_status", "group_id", "status"),
    )

    group = relationship("StudyGroup", back_populates="memberships")
    user = relationship("Profile", foreign_keys=[user_id], lazy="joined")
