from __future__ import annotations

from typing import Any

from studyhub.schemas.groups import (
    CreatorOut,
    GroupMemberOut,
    GroupOut,
    GroupPreviewOut,
    MemberUserDetails,
    MembershipOut,
    UserGroupOut,
)


def _creator_out(profile: Any) -> CreatorOut | None:
    if profile is None:
        return None
    return CreatorOut(
        id=profile.id,
        name=profile.name,
        email=profile.email,
        faculty=profile.faculty,
        course=profile.course,
    )


def _group_fields(row: dict) -> dict[str, Any]:
    g = row["group"]
    return {
        "id": g.id,
        "name": g.name,
        "description": g.description,
        "subject": g.subject,
        "faculty": g.faculty,
        "course": g.course,
        "year_of_study": g.year_of_study,
        "creator_id": g.creator_id,
        "creator": _creator_out(g.creator),
        "max_members": g.max_members,
        "is_private": g.is_private,
        "invite_code": g.invite_code,
        "status": g.status,
        "is_scheduled": g.is_scheduled,
        "scheduled_start": g.scheduled_start,
        "scheduled_end": g.scheduled_end,
        "meeting_times": list(g.meeting_times or []),
        "created_at": g.created_at,
        "updated_at": g.updated_at,
        "member_count": row["member_count"],
        "current_status": row["current_status"],
        "is_joinable": row["is_joinable"],
    }


def group_out(row: dict) -> GroupOut:
    return GroupOut(**_group_fields(row))


def user_group_out(row: dict) -> UserGroupOut:
    return UserGroupOut(**_group_fields(row), role=row["role"], joined_at=row["joined_at"])


def group_preview_out(row: dict) -> GroupPreviewOut:
    # join preview: no invite code, creator reduced to a name
    g = row["group"]
    return GroupPreviewOut(
        id=g.id,
        name=g.name,
        description=g.description,
        subject=g.subject,
        faculty=g.faculty,
        course=g.course,
        year_of_study=g.year_of_study,
        max_members=g.max_members,
        is_private=g.is_private,
        created_at=g.created_at,
        creator_name=g.creator.name if g.creator is not None else None,
        member_count=row["member_count"],
        current_status=row["current_status"],
    )


def membership_out(m: Any) -> MembershipOut:
    return MembershipOut(
        id=m.id,
        group_id=m.group_id,
        user_id=m.user_id,
        role=m.role,
        status=m.status,
        invited_by=m.invited_by,
        joined_at=m.joined_at,
        left_at=m.left_at,
    )


def member_out(m: Any) -> GroupMemberOut:
    u = m.user
    return GroupMemberOut(
        **membership_out(m).model_dump(),
        user_details=(
            MemberUserDetails(name=u.name, email=u.email, faculty=u.faculty, course=u.course)
            if u is not None
            else None
        ),
    )
