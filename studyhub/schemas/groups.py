from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from uuid import UUID
from typing import List

from studyhub.services.lifecycle import EffectiveStatus, StoredStatus, as_utc


class CreateGroupRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=3, max_length=100)
    subject: str = Field(min_length=2, max_length=50)
    creator_id: UUID

    description: str | None = None
    faculty: str | None = Field(default=None, max_length=120)
    course: str | None = Field(default=None, max_length=120)
    year_of_study: int | None = Field(default=None, ge=1, le=10)

    max_members: int = Field(default=10, ge=1, le=50)
    is_private: bool = False

    is_scheduled: bool | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    meeting_times: List[str] = Field(default_factory=list)

    @field_validator("scheduled_start", "scheduled_end")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @model_validator(mode="after")
    def require_window_when_scheduled(self) -> "CreateGroupRequest":
        if self.is_scheduled and (self.scheduled_start is None or self.scheduled_end is None):
            raise ValueError("scheduled_start and scheduled_end are required for scheduled groups")
        return self

    @property
    def wants_schedule(self) -> bool:
        # an explicit flag wins; otherwise a complete window implies a schedule
        if self.is_scheduled is not None:
            return self.is_scheduled
        return self.scheduled_start is not None and self.scheduled_end is not None


class CreatorOut(BaseModel):
    id: UUID
    name: str
    email: str
    faculty: str | None = None
    course: str | None = None


class GroupOut(BaseModel):
    id: UUID
    name: str
    description: str | None
    subject: str
    faculty: str | None
    course: str | None
    year_of_study: int | None
    creator_id: UUID
    creator: CreatorOut | None = None
    max_members: int
    is_private: bool
    invite_code: str
    status: StoredStatus
    is_scheduled: bool
    scheduled_start: datetime | None
    scheduled_end: datetime | None
    meeting_times: List[str]
    created_at: datetime
    updated_at: datetime | None = None

    member_count: int
    current_status: EffectiveStatus
    is_joinable: bool


class UserGroupOut(GroupOut):
    role: str
    joined_at: datetime


class GroupPreviewOut(BaseModel):
    id: UUID
    name: str
    description: str | None
    subject: str
    faculty: str | None
    course: str | None
    year_of_study: int | None
    max_members: int
    is_private: bool
    created_at: datetime
    creator_name: str | None
    member_count: int
    current_status: EffectiveStatus


class GroupMessageResponse(BaseModel):
    message: str
    group: GroupOut


class GroupResponse(BaseModel):
    group: GroupOut


class GroupPreviewResponse(BaseModel):
    group: GroupPreviewOut


class GroupListResponse(BaseModel):
    groups: List[GroupOut]
    count: int
    total: int


class UserGroupListResponse(BaseModel):
    groups: List[UserGroupOut]
    count: int


class SearchFilters(BaseModel):
    subject: str | None = None
    faculty: str | None = None
    course: str | None = None
    year_of_study: int | None = None
    is_scheduled: bool | None = None
    include_active_scheduled: bool = True


class GroupSearchResponse(BaseModel):
    groups: List[GroupOut]
    count: int
    filters: SearchFilters


class UpcomingGroupsResponse(BaseModel):
    groups: List[GroupOut]
    count: int
    days_ahead: int


class MembershipOut(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID
    role: str
    status: str
    invited_by: UUID | None = None
    joined_at: datetime
    left_at: datetime | None = None


class MemberUserDetails(BaseModel):
    name: str
    email: str
    faculty: str | None = None
    course: str | None = None


class GroupMemberOut(MembershipOut):
    user_details: MemberUserDetails | None = None


class GroupMembersResponse(BaseModel):
    members: List[GroupMemberOut]
    count: int


class JoinGroupRequest(BaseModel):
    user_id: UUID
    invited_by: UUID | None = None


class JoinGroupResponse(BaseModel):
    message: str
    membership: MembershipOut


class JoinByCodeRequest(BaseModel):
    invite_code: str = Field(min_length=4, max_length=32)
    user_id: UUID


class JoinByCodeResponse(BaseModel):
    message: str
    group_id: UUID
    group_name: str


class LeaveGroupRequest(BaseModel):
    user_id: UUID


class RemoveMemberRequest(BaseModel):
    user_id: UUID
    target_user_id: UUID


class MembershipChangeResponse(BaseModel):
    message: str
    membership: MembershipOut


class ChangeRoleRequest(BaseModel):
    user_id: UUID
    # checked by the service so the error message names the allowed roles
    new_role: str = Field(min_length=1, max_length=20)


class ChangeRoleResponse(BaseModel):
    message: str
    member: MembershipOut


class GroupStats(BaseModel):
    total_members: int
    creators: int
    admins: int
    regular_members: int
    total_left: int
    total_removed: int


class GroupStatsResponse(BaseModel):
    stats: GroupStats


class UpdateGroupRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: UUID
    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = None
    subject: str | None = Field(default=None, min_length=2, max_length=50)
    max_members: int | None = Field(default=None, ge=1, le=50)
    is_private: bool | None = None
    status: StoredStatus | None = None

    def update_fields(self) -> dict:
        fields = self.model_dump(exclude_unset=True, exclude={"user_id"})
        # only description may be cleared with an explicit null
        return {k: v for k, v in fields.items() if v is not None or k == "description"}


class UpdateScheduleRequest(BaseModel):
    user_id: UUID
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    meeting_times: List[str] | None = None

    @field_validator("scheduled_start", "scheduled_end")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class DeleteGroupRequest(BaseModel):
    user_id: UUID


class DeleteGroupResponse(BaseModel):
    message: str
    ok: bool
