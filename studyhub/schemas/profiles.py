from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field
from uuid import UUID


class CreateProfileRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    faculty: str | None = Field(default=None, max_length=120)
    course: str | None = Field(default=None, max_length=120)
    year_of_study: int | None = Field(default=None, ge=1, le=10)


class ProfileOut(BaseModel):
    id: UUID
    name: str
    email: str
    faculty: str | None = None
    course: str | None = None
    year_of_study: int | None = None
    created_at: datetime
