from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from studyhub.api.deps import get_db
from studyhub.api.http_errors import permission_error, value_error
from studyhub.api.presenters.groups import (
    group_out,
    group_preview_out,
    member_out,
    membership_out,
    user_group_out,
)
from studyhub.core.config import settings
from studyhub.schemas.groups import (
    ChangeRoleRequest,
    ChangeRoleResponse,
    CreateGroupRequest,
    GroupMessageResponse,
    DeleteGroupRequest,
    DeleteGroupResponse,
    GroupListResponse,
    GroupMembersResponse,
    GroupPreviewResponse,
    GroupResponse,
    GroupSearchResponse,
    GroupStats,
    GroupStatsResponse,
    JoinByCodeRequest,
    JoinByCodeResponse,
    JoinGroupRequest,
    JoinGroupResponse,
    LeaveGroupRequest,
    MembershipChangeResponse,
    RemoveMemberRequest,
    SearchFilters,
    UpcomingGroupsResponse,
    UpdateGroupRequest,
    UpdateScheduleRequest,
    UserGroupListResponse,
)
from studyhub.services.groups import (
    UNSET,
    change_member_role,
    create_group,
    delete_group,
    get_group,
    get_group_by_invite_code,
    group_stats,
    join_group,
    join_group_by_invite_code,
    leave_group,
    list_active_scheduled_groups,
    list_groups,
    list_members,
    list_upcoming_scheduled_groups,
    list_user_groups,
    remove_member,
    search_public_groups,
    update_group,
    update_schedule,
)

router = APIRouter(prefix="/groups", tags=["groups"])

StatusFilter = Literal["active", "scheduled", "archived", "all"]

# stores bind OFFSET as a signed 64-bit integer
MAX_OFFSET = 2**63 - 1


@router.post("", response_model=GroupMessageResponse, status_code=201)
async def create_group_route(
    payload: CreateGroupRequest,
    db: AsyncSession = Depends(get_db),
):
    scheduled = payload.wants_schedule
    try:
        g = await create_group(
            db,
            creator_id=payload.creator_id,
            name=payload.name,
            subject=payload.subject,
            description=payload.description,
            faculty=payload.faculty,
            course=payload.course,
            year_of_study=payload.year_of_study,
            max_members=payload.max_members,
            is_private=payload.is_private,
            is_scheduled=scheduled,
            scheduled_start=payload.scheduled_start,
            scheduled_end=payload.scheduled_end,
            meeting_times=payload.meeting_times,
        )
        await db.commit()
        row = await get_group(db, g.id)
        return GroupMessageResponse(
            message=f"Study group {'scheduled' if scheduled else 'created'} successfully",
            group=group_out(row),
        )
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.get("", response_model=GroupListResponse)
async def list_groups_route(
    status: StatusFilter = Query(default="active"),
    limit: int = Query(default=settings.default_page_limit, ge=1, le=settings.max_page_limit),
    offset: int = Query(default=0, ge=0),
    page: int | None = Query(default=None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    if page is not None:
        offset = (page - 1) * limit
    # past the last row either way; the page is simply empty
    offset = min(offset, MAX_OFFSET)
    rows, total = await list_groups(db, status=status, limit=limit, offset=offset)
    return GroupListResponse(groups=[group_out(r) for r in rows], count=len(rows), total=total)


@router.get("/search/public", response_model=GroupSearchResponse)
async def search_public_groups_route(
    subject: str | None = Query(default=None),
    faculty: str | None = Query(default=None),
    course: str | None = Query(default=None),
    year_of_study: int | None = Query(default=None, ge=1),
    is_scheduled: bool | None = Query(default=None),
    include_active_scheduled: bool = Query(default=True),
    db: AsyncSession = Depends(get_db),
):
    filters = SearchFilters(
        subject=subject or None,
        faculty=faculty or None,
        course=course or None,
        year_of_study=year_of_study,
        is_scheduled=is_scheduled,
        include_active_scheduled=include_active_scheduled,
    )
    rows = await search_public_groups(db, **filters.model_dump())
    return GroupSearchResponse(groups=[group_out(r) for r in rows], count=len(rows), filters=filters)


@router.get("/scheduled/upcoming", response_model=UpcomingGroupsResponse)
async def upcoming_scheduled_groups_route(
    days_ahead: int = Query(default=7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_upcoming_scheduled_groups(db, days_ahead=days_ahead)
    return UpcomingGroupsResponse(groups=[group_out(r) for r in rows], count=len(rows), days_ahead=days_ahead)


@router.get("/by-code/{invite_code}", response_model=GroupPreviewResponse)
async def group_by_invite_code_route(
    invite_code: str,
    db: AsyncSession = Depends(get_db),
):
    try:
        row = await get_group_by_invite_code(db, invite_code)
        return GroupPreviewResponse(group=group_preview_out(row))
    except ValueError as e:
        raise value_error(e) from e


@router.post("/join-by-code", response_model=JoinByCodeResponse, status_code=200)
async def join_by_code_route(
    payload: JoinByCodeRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        group, _ = await join_group_by_invite_code(db, code=payload.invite_code, user_id=payload.user_id)
        await db.commit()
        return JoinByCodeResponse(
            message=f"Successfully joined {group.name}",
            group_id=group.id,
            group_name=group.name,
        )
    except ValueError as e:
        await db.rollback()
        raise value_error(e, detail_overrides={"already_member": "You are already a member of this group"}) from e


@router.get("/user/{user_id}", response_model=UserGroupListResponse)
async def user_groups_route(
    user_id: UUID,
    status: StatusFilter = Query(default="active"),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_user_groups(db, user_id, status=status)
    return UserGroupListResponse(groups=[user_group_out(r) for r in rows], count=len(rows))


@router.get("/user/{user_id}/scheduled/active", response_model=UserGroupListResponse)
async def user_active_scheduled_groups_route(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    rows = await list_active_scheduled_groups(db, user_id)
    return UserGroupListResponse(groups=[user_group_out(r) for r in rows], count=len(rows))


@router.get("/{group_id}", response_model=GroupResponse)
async def group_detail_route(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        row = await get_group(db, group_id)
        return GroupResponse(group=group_out(row))
    except ValueError as e:
        raise value_error(e) from e


@router.patch("/{group_id}", response_model=GroupMessageResponse, status_code=200)
async def update_group_route(
    group_id: UUID,
    payload: UpdateGroupRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        await update_group(db, group_id=group_id, user_id=payload.user_id, fields=payload.update_fields())
        await db.commit()
        row = await get_group(db, group_id)
        return GroupMessageResponse(message="Group updated successfully", group=group_out(row))
    except PermissionError as e:
        await db.rollback()
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.patch("/{group_id}/schedule", response_model=GroupMessageResponse, status_code=200)
async def update_schedule_route(
    group_id: UUID,
    payload: UpdateScheduleRequest,
    db: AsyncSession = Depends(get_db),
):
    # IMPORTANT: only touch fields the client actually sent
    data = payload.model_dump(exclude_unset=True)
    try:
        await update_schedule(
            db,
            group_id=group_id,
            user_id=payload.user_id,
            scheduled_start=data["scheduled_start"] if "scheduled_start" in data else UNSET,
            scheduled_end=data["scheduled_end"] if "scheduled_end" in data else UNSET,
            meeting_times=data["meeting_times"] if "meeting_times" in data else UNSET,
        )
        await db.commit()
        row = await get_group(db, group_id)
        return GroupMessageResponse(message="Group schedule updated successfully", group=group_out(row))
    except PermissionError as e:
        await db.rollback()
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.delete("/{group_id}", response_model=DeleteGroupResponse, status_code=200)
async def delete_group_route(
    group_id: UUID,
    payload: DeleteGroupRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_group(db, group_id=group_id, user_id=payload.user_id)
        await db.commit()
        return DeleteGroupResponse(message="Group deleted successfully", ok=True)
    except PermissionError as e:
        await db.rollback()
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.get("/{group_id}/members", response_model=GroupMembersResponse)
async def group_members_route(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        members = await list_members(db, group_id)
        return GroupMembersResponse(members=[member_out(m) for m in members], count=len(members))
    except ValueError as e:
        raise value_error(e) from e


@router.post("/{group_id}/join", response_model=JoinGroupResponse, status_code=200)
async def join_group_route(
    group_id: UUID,
    payload: JoinGroupRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        membership = await join_group(
            db,
            group_id=group_id,
            user_id=payload.user_id,
            invited_by=payload.invited_by,
        )
        await db.commit()
        return JoinGroupResponse(message="Successfully joined the group", membership=membership_out(membership))
    except PermissionError as e:
        await db.rollback()
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.post("/{group_id}/leave", response_model=MembershipChangeResponse, status_code=200)
async def leave_group_route(
    group_id: UUID,
    payload: LeaveGroupRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        membership = await leave_group(db, group_id=group_id, user_id=payload.user_id)
        await db.commit()
        return MembershipChangeResponse(message="Successfully left the group", membership=membership_out(membership))
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.post("/{group_id}/remove-member", response_model=MembershipChangeResponse, status_code=200)
async def remove_member_route(
    group_id: UUID,
    payload: RemoveMemberRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        membership = await remove_member(
            db,
            group_id=group_id,
            acting_user_id=payload.user_id,
            target_user_id=payload.target_user_id,
        )
        await db.commit()
        return MembershipChangeResponse(message="Member removed successfully", membership=membership_out(membership))
    except PermissionError as e:
        await db.rollback()
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.patch("/{group_id}/members/{member_id}/role", response_model=ChangeRoleResponse, status_code=200)
async def change_member_role_route(
    group_id: UUID,
    member_id: UUID,
    payload: ChangeRoleRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        membership = await change_member_role(
            db,
            group_id=group_id,
            acting_user_id=payload.user_id,
            target_user_id=member_id,
            new_role=payload.new_role,
        )
        await db.commit()
        return ChangeRoleResponse(
            message=f"Member role updated to {payload.new_role}",
            member=membership_out(membership),
        )
    except PermissionError as e:
        await db.rollback()
        raise permission_error(e) from e
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.get("/{group_id}/stats", response_model=GroupStatsResponse)
async def group_stats_route(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        stats = await group_stats(db, group_id)
        return GroupStatsResponse(stats=GroupStats(**stats))
    except ValueError as e:
        raise value_error(e) from e
