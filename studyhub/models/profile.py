from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from studyhub.db.base_class import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid(), primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(320), unique=True, index=True, nullable=False)

    faculty: Mapped[str | None] = mapped_column(sa.String(120), nullable=True)
    course: Mapped[str | None] = mapped_column(sa.String(120), nullable=True)
    year_of_study: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
