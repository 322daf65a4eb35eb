from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Iterable
from datetime import datetime, timedelta
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from studyhub.core.config import settings
from studyhub.models.group_membership import GroupMembership
from studyhub.models.study_group import StudyGroup
from studyhub.services.lifecycle import as_utc, effective_status, is_joinable, now_utc
from studyhub.services.profiles import profile_exists

logger = logging.getLogger(__name__)

UNSET = object()

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits

ASSIGNABLE_ROLES = ("admin", "member")
MANAGER_ROLES = ("creator", "admin")
UPDATABLE_FIELDS = ("name", "description", "subject", "max_members", "is_private", "status")


def generate_invite_code(length: int | None = None) -> str:
    length = length or settings.invite_code_length
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


def _like_pattern(value: str) -> str:
    escaped = value.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def can_remove_member(actor_role: str | None, target_role: str) -> bool:
    if actor_role == "creator":
        return target_role != "creator"
    if actor_role == "admin":
        return target_role == "member"
    return False


def summarize_memberships(rows: Iterable[tuple[str, str]]) -> dict[str, int]:
    """Role/status tallies over every membership row of a group, history included."""
    stats = {
        "total_members": 0,
        "creators": 0,
        "admins": 0,
        "regular_members": 0,
        "total_left": 0,
        "total_removed": 0,
    }
    for role, status in rows:
        if status == "active":
            stats["total_members"] += 1
            if role == "creator":
                stats["creators"] += 1
            elif role == "admin":
                stats["admins"] += 1
            elif role == "member":
                stats["regular_members"] += 1
        elif status == "left":
            stats["total_left"] += 1
        elif status == "removed":
            stats["total_removed"] += 1
    return stats


# ─────────────────────────────────────────────
# Store access
# ─────────────────────────────────────────────

async def _get_group(db: AsyncSession, group_id: UUID, *, lock: bool = False) -> StudyGroup:
    q = sa.select(StudyGroup).where(StudyGroup.id == group_id)
    if lock:
        # serialises admissions to the same group (no-op on SQLite)
        q = q.with_for_update(of=StudyGroup).execution_options(populate_existing=True)
    group = (await db.execute(q)).scalar_one_or_none()
    if group is None:
        raise ValueError("group_not_found")
    return group


async def _active_membership(db: AsyncSession, group_id: UUID, user_id: UUID) -> GroupMembership | None:
    q = sa.select(GroupMembership).where(
        GroupMembership.group_id == group_id,
        GroupMembership.user_id == user_id,
        GroupMembership.status == "active",
    )
    return (await db.execute(q)).scalar_one_or_none()


async def _active_role(db: AsyncSession, group_id: UUID, user_id: UUID) -> str | None:
    membership = await _active_membership(db, group_id, user_id)
    return membership.role if membership is not None else None


async def _active_member_counts(db: AsyncSession, group_ids: list[UUID]) -> dict[UUID, int]:
    if not group_ids:
        return {}
    q = (
        sa.select(GroupMembership.group_id, sa.func.count(GroupMembership.id))
        .where(
            GroupMembership.group_id.in_(group_ids),
            GroupMembership.status == "active",
        )
        .group_by(GroupMembership.group_id)
    )
    rows = (await db.execute(q)).all()
    return {group_id: int(count) for group_id, count in rows}


async def _active_member_count(db: AsyncSession, group_id: UUID) -> int:
    counts = await _active_member_counts(db, [group_id])
    return counts.get(group_id, 0)


def _decorate(group: StudyGroup, member_count: int, now: datetime) -> dict:
    return {
        "group": group,
        "member_count": member_count,
        "current_status": effective_status(group, now),
        "is_joinable": is_joinable(group, now),
    }


async def _decorate_all(db: AsyncSession, groups: list[StudyGroup], now: datetime) -> list[dict]:
    counts = await _active_member_counts(db, [g.id for g in groups])
    return [_decorate(g, counts.get(g.id, 0), now) for g in groups]


# ─────────────────────────────────────────────
# Directory
# ─────────────────────────────────────────────

async def list_groups(
    db: AsyncSession,
    *,
    status: str = "active",
    limit: int = 100,
    offset: int = 0,
    now: datetime | None = None,
) -> tuple[list[dict], int]:
    now = now or now_utc()

    q = sa.select(StudyGroup)
    count_q = sa.select(sa.func.count(StudyGroup.id))
    if status and status != "all":
        q = q.where(StudyGroup.status == status)
        count_q = count_q.where(StudyGroup.status == status)

    total = int((await db.execute(count_q)).scalar_one())

    q = q.order_by(StudyGroup.created_at.desc(), StudyGroup.id.asc()).limit(limit).offset(offset)
    groups = list((await db.execute(q)).scalars().all())
    return await _decorate_all(db, groups, now), total


async def search_public_groups(
    db: AsyncSession,
    *,
    subject: str | None = None,
    faculty: str | None = None,
    course: str | None = None,
    year_of_study: int | None = None,
    is_scheduled: bool | None = None,
    include_active_scheduled: bool = True,
    now: datetime | None = None,
) -> list[dict]:
    now = now or now_utc()

    q = sa.select(StudyGroup).where(StudyGroup.is_private == sa.false())
    if subject:
        q = q.where(StudyGroup.subject.ilike(_like_pattern(subject), escape="\\"))
    if faculty:
        q = q.where(StudyGroup.faculty.ilike(_like_pattern(faculty), escape="\\"))
    if course:
        q = q.where(StudyGroup.course.ilike(_like_pattern(course), escape="\\"))
    if year_of_study is not None:
        q = q.where(StudyGroup.year_of_study == year_of_study)
    if is_scheduled is not None:
        q = q.where(StudyGroup.is_scheduled == is_scheduled)
    q = q.order_by(StudyGroup.created_at.desc(), StudyGroup.id.asc())

    candidates = (await db.execute(q)).scalars().all()

    # current status depends on the clock, so this filter cannot run in SQL
    visible = [
        g
        for g in candidates
        if effective_status(g, now) == "active" and (include_active_scheduled or not g.is_scheduled)
    ]
    return await _decorate_all(db, visible, now)


async def get_group(db: AsyncSession, group_id: UUID, *, now: datetime | None = None) -> dict:
    now = now or now_utc()
    group = await _get_group(db, group_id)
    return _decorate(group, await _active_member_count(db, group.id), now)


async def _find_by_invite_code(db: AsyncSession, code: str, *, lock: bool = False) -> StudyGroup:
    q = sa.select(StudyGroup).where(
        StudyGroup.invite_code == normalize_invite_code(code),
        StudyGroup.status == "active",
    )
    if lock:
        q = q.with_for_update(of=StudyGroup).execution_options(populate_existing=True)
    group = (await db.execute(q)).scalar_one_or_none()
    if group is None:
        raise ValueError("invalid_invite_code")
    return group


async def get_group_by_invite_code(db: AsyncSession, code: str, *, now: datetime | None = None) -> dict:
    now = now or now_utc()
    group = await _find_by_invite_code(db, code)
    return _decorate(group, await _active_member_count(db, group.id), now)


async def list_user_groups(
    db: AsyncSession,
    user_id: UUID,
    *,
    status: str = "active",
    now: datetime | None = None,
) -> list[dict]:
    now = now or now_utc()

    q = (
        sa.select(StudyGroup, GroupMembership.role, GroupMembership.joined_at)
        .join(GroupMembership, GroupMembership.group_id == StudyGroup.id)
        .where(
            GroupMembership.user_id == user_id,
            GroupMembership.status == "active",
        )
        .order_by(GroupMembership.joined_at.desc())
    )
    if status and status != "all":
        q = q.where(StudyGroup.status == status)

    rows = (await db.execute(q)).all()
    counts = await _active_member_counts(db, [r[0].id for r in rows])
    out: list[dict] = []
    for group, role, joined_at in rows:
        item = _decorate(group, counts.get(group.id, 0), now)
        item["role"] = role
        item["joined_at"] = joined_at
        out.append(item)
    return out


async def list_active_scheduled_groups(
    db: AsyncSession,
    user_id: UUID,
    *,
    now: datetime | None = None,
) -> list[dict]:
    now = as_utc(now or now_utc())

    q = (
        sa.select(StudyGroup, GroupMembership.role, GroupMembership.joined_at)
        .join(GroupMembership, GroupMembership.group_id == StudyGroup.id)
        .where(
            GroupMembership.user_id == user_id,
            GroupMembership.status == "active",
            StudyGroup.is_scheduled == sa.true(),
            StudyGroup.scheduled_start <= now,
            StudyGroup.scheduled_end >= now,
        )
        .order_by(StudyGroup.scheduled_end.asc())
    )
    rows = (await db.execute(q)).all()
    counts = await _active_member_counts(db, [r[0].id for r in rows])
    out: list[dict] = []
    for group, role, joined_at in rows:
        item = _decorate(group, counts.get(group.id, 0), now)
        item["role"] = role
        item["joined_at"] = joined_at
        out.append(item)
    return out


async def list_upcoming_scheduled_groups(
    db: AsyncSession,
    *,
    days_ahead: int = 7,
    now: datetime | None = None,
) -> list[dict]:
    now = as_utc(now or now_utc())
    horizon = now + timedelta(days=days_ahead)

    q = (
        sa.select(StudyGroup)
        .where(
            StudyGroup.is_scheduled == sa.true(),
            StudyGroup.is_private == sa.false(),
            StudyGroup.scheduled_start >= now,
            StudyGroup.scheduled_start <= horizon,
        )
        .order_by(StudyGroup.scheduled_start.asc())
    )
    groups = list((await db.execute(q)).scalars().all())
    return await _decorate_all(db, groups, now)


async def list_members(db: AsyncSession, group_id: UUID) -> list[GroupMembership]:
    await _get_group(db, group_id)
    q = (
        sa.select(GroupMembership)
        .where(
            GroupMembership.group_id == group_id,
            GroupMembership.status == "active",
        )
        .order_by(GroupMembership.joined_at.asc())
    )
    return list((await db.execute(q)).scalars().all())


async def group_stats(db: AsyncSession, group_id: UUID) -> dict[str, int]:
    await _get_group(db, group_id)
    q = sa.select(GroupMembership.role, GroupMembership.status).where(GroupMembership.group_id == group_id)
    rows = (await db.execute(q)).all()
    return summarize_memberships((r.role, r.status) for r in rows)


# ─────────────────────────────────────────────
# Admission & membership changes
# ─────────────────────────────────────────────

async def _unique_invite_code(db: AsyncSession) -> str:
    for _ in range(settings.invite_code_attempts):
        code = generate_invite_code()
        existing = (
            await db.execute(sa.select(StudyGroup.id).where(StudyGroup.invite_code == code))
        ).scalar_one_or_none()
        if existing is None:
            return code
        logger.warning("Invite code collision on %s, regenerating", code)

    raise RuntimeError("Failed to generate unique invite code")


async def create_group(
    db: AsyncSession,
    *,
    creator_id: UUID,
    name: str,
    subject: str,
    description: str | None = None,
    faculty: str | None = None,
    course: str | None = None,
    year_of_study: int | None = None,
    max_members: int = 10,
    is_private: bool = False,
    is_scheduled: bool = False,
    scheduled_start: datetime | None = None,
    scheduled_end: datetime | None = None,
    meeting_times: list[str] | None = None,
    now: datetime | None = None,
) -> StudyGroup:
    now = now or now_utc()

    start = end = None
    if is_scheduled:
        start, end = as_utc(scheduled_start), as_utc(scheduled_end)
        if start is None or end is None:
            raise ValueError("schedule_required")
        if start >= end:
            raise ValueError("invalid_schedule")
        if start <= now:
            raise ValueError("schedule_in_past")

    if not await profile_exists(db, creator_id):
        raise ValueError("user_not_found")

    group = StudyGroup(
        name=name,
        description=description,
        subject=subject,
        faculty=faculty,
        course=course,
        year_of_study=year_of_study,
        creator_id=creator_id,
        max_members=max_members,
        is_private=is_private,
        invite_code=await _unique_invite_code(db),
        status="scheduled" if is_scheduled else "active",
        is_scheduled=is_scheduled,
        scheduled_start=start,
        scheduled_end=end,
        meeting_times=list(meeting_times or []),
    )
    db.add(group)
    await db.flush()  # get group.id

    # creator membership goes out in the same transaction as the group row
    db.add(
        GroupMembership(
            group_id=group.id,
            user_id=creator_id,
            role="creator",
            status="active",
            joined_at=now,
        )
    )
    await db.flush()
    await db.refresh(group)

    logger.info("Study group %s created by %s (scheduled=%s)", group.id, creator_id, is_scheduled)
    return group


async def _admit(
    db: AsyncSession,
    group: StudyGroup,
    user_id: UUID,
    *,
    invited_by: UUID | None,
    check_private: bool,
    now: datetime,
) -> GroupMembership:
    if not is_joinable(group, now):
        logger.info("Join rejected for %s: group %s is %s", user_id, group.id, effective_status(group, now))
        raise ValueError("not_joinable")

    if check_private and group.is_private and invited_by is None:
        # Only checks that somebody is in the group, not that the requester knows them.
        if await _active_member_count(db, group.id) == 0:
            raise PermissionError("Must be connected to a group member to join private groups")

    if await _active_membership(db, group.id, user_id) is not None:
        raise ValueError("already_member")

    if await _active_member_count(db, group.id) >= group.max_members:
        logger.info("Join rejected for %s: group %s is full", user_id, group.id)
        raise ValueError("group_full")

    membership = GroupMembership(
        group_id=group.id,
        user_id=user_id,
        role="member",
        status="active",
        invited_by=invited_by,
        joined_at=now,
    )
    db.add(membership)
    await db.flush()

    logger.info("User %s joined study group %s", user_id, group.id)
    return membership


async def join_group(
    db: AsyncSession,
    *,
    group_id: UUID,
    user_id: UUID,
    invited_by: UUID | None = None,
    now: datetime | None = None,
) -> GroupMembership:
    now = now or now_utc()
    group = await _get_group(db, group_id, lock=True)
    if not await profile_exists(db, user_id):
        raise ValueError("user_not_found")
    if invited_by is not None and not await profile_exists(db, invited_by):
        raise ValueError("inviter_not_found")
    return await _admit(db, group, user_id, invited_by=invited_by, check_private=True, now=now)


async def join_group_by_invite_code(
    db: AsyncSession,
    *,
    code: str,
    user_id: UUID,
    now: datetime | None = None,
) -> tuple[StudyGroup, GroupMembership]:
    now = now or now_utc()
    group = await _find_by_invite_code(db, code, lock=True)
    if not await profile_exists(db, user_id):
        raise ValueError("user_not_found")
    # holding the code stands in for the private-group check
    membership = await _admit(db, group, user_id, invited_by=None, check_private=False, now=now)
    return group, membership


async def change_member_role(
    db: AsyncSession,
    *,
    group_id: UUID,
    acting_user_id: UUID,
    target_user_id: UUID,
    new_role: str,
) -> GroupMembership:
    if new_role not in ASSIGNABLE_ROLES:
        raise ValueError("invalid_role")

    await _get_group(db, group_id)

    if await _active_role(db, group_id, acting_user_id) != "creator":
        raise PermissionError("Only group creator can change member roles")

    target = await _active_membership(db, group_id, target_user_id)
    if target is None:
        raise ValueError("member_not_found")
    if target.role == "creator":
        raise ValueError("cannot_change_creator_role")

    target.role = new_role
    await db.flush()

    logger.info("User %s is now %s in study group %s", target_user_id, new_role, group_id)
    return target


async def leave_group(
    db: AsyncSession,
    *,
    group_id: UUID,
    user_id: UUID,
    now: datetime | None = None,
) -> GroupMembership:
    now = now or now_utc()
    await _get_group(db, group_id)

    membership = await _active_membership(db, group_id, user_id)
    if membership is None:
        raise ValueError("not_a_member")
    if membership.role == "creator":
        raise ValueError("creator_cannot_leave")

    membership.status = "left"
    membership.left_at = now
    await db.flush()

    logger.info("User %s left study group %s", user_id, group_id)
    return membership


async def remove_member(
    db: AsyncSession,
    *,
    group_id: UUID,
    acting_user_id: UUID,
    target_user_id: UUID,
    now: datetime | None = None,
) -> GroupMembership:
    now = now or now_utc()
    await _get_group(db, group_id)

    actor_role = await _active_role(db, group_id, acting_user_id)
    if actor_role not in MANAGER_ROLES:
        raise PermissionError("Only group creators and admins can remove members")

    target = await _active_membership(db, group_id, target_user_id)
    if target is None:
        raise ValueError("target_not_a_member")
    if target.role == "creator":
        raise ValueError("cannot_remove_creator")
    if not can_remove_member(actor_role, target.role):
        raise PermissionError("Admins can only remove regular members")

    target.status = "removed"
    target.left_at = now
    await db.flush()

    logger.info("User %s removed from study group %s by %s", target_user_id, group_id, acting_user_id)
    return target


async def update_group(
    db: AsyncSession,
    *,
    group_id: UUID,
    user_id: UUID,
    fields: dict,
) -> StudyGroup:
    updates = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    if not updates:
        raise ValueError("no_fields")

    group = await _get_group(db, group_id)
    if await _active_role(db, group_id, user_id) not in MANAGER_ROLES:
        raise PermissionError("Only group creators and admins can update group details")

    for key, value in updates.items():
        setattr(group, key, value)
    await db.flush()
    await db.refresh(group)
    return group


async def update_schedule(
    db: AsyncSession,
    *,
    group_id: UUID,
    user_id: UUID,
    scheduled_start=UNSET,
    scheduled_end=UNSET,
    meeting_times=UNSET,
) -> StudyGroup:
    group = await _get_group(db, group_id)
    if await _active_role(db, group_id, user_id) not in MANAGER_ROLES:
        raise PermissionError("Only group creators and admins can update schedule")

    start = as_utc(group.scheduled_start) if scheduled_start is UNSET else as_utc(scheduled_start)
    end = as_utc(group.scheduled_end) if scheduled_end is UNSET else as_utc(scheduled_end)
    if start is not None and end is not None and start >= end:
        raise ValueError("invalid_schedule")

    both_given = (
        scheduled_start is not UNSET
        and scheduled_end is not UNSET
        and scheduled_start is not None
        and scheduled_end is not None
    )
    if (group.is_scheduled or both_given) and (start is None or end is None):
        raise ValueError("schedule_required")

    group.scheduled_start = start
    group.scheduled_end = end
    if meeting_times is not UNSET:
        group.meeting_times = list(meeting_times or [])
    if both_given:
        group.is_scheduled = True
        group.status = "scheduled"

    await db.flush()
    await db.refresh(group)

    logger.info("Schedule of study group %s updated by %s", group_id, user_id)
    return group


async def delete_group(db: AsyncSession, *, group_id: UUID, user_id: UUID) -> None:
    group = await _get_group(db, group_id)
    if await _active_role(db, group_id, user_id) != "creator":
        raise PermissionError("Only group creator can delete the group")

    await db.delete(group)
    await db.flush()

    logger.info("Study group %s deleted by %s", group_id, user_id)
