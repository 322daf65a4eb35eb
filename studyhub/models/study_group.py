from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyhub.db.base_class import Base


class StudyGroup(Base):
    __tablename__ = "study_groups"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    # free-text classification
    subject: Mapped[str] = mapped_column(sa.String(50), nullable=False, index=True)
    faculty: Mapped[str | None] = mapped_column(sa.String(120), nullable=True)
    course: Mapped[str | None] = mapped_column(sa.String(120), nullable=True)
    year_of_study: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)

    creator_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False, index=True)

    max_members: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default=sa.text("10"))
    is_private: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, server_default=sa.false())
    invite_code: Mapped[str] = mapped_column(sa.String(32), unique=True, nullable=False, index=True)

    # stored status; "active" | "scheduled" | "archived". Read paths use lifecycle.effective_status.
    status: Mapped[str] = mapped_column(sa.String(20), nullable=False, server_default="active")

    is_scheduled: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, server_default=sa.false())
    scheduled_start: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    scheduled_end: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    meeting_times: Mapped[list[str]] = mapped_column(
        sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
    )

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
        nullable=False,
    )

    creator = relationship("Profile", lazy="joined")
    memberships = relationship("GroupMembership", back_populates="group", cascade="all, delete-orphan")

    __table_args__ = (
        sa.CheckConstraint("status IN ('active','scheduled','archived')", name="ck_study_groups_status"),
        sa.CheckConstraint("max_members >= 1", name="ck_study_groups_max_members"),
        sa.CheckConstraint(
            "scheduled_start IS NULL OR scheduled_end IS NULL OR scheduled_start < scheduled_end",
            name="ck_study_groups_schedule_window",
        ),
        sa.Index("ix_study_groups_status_created", "status", "created_at"),
    )
