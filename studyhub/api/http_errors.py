from __future__ import annotations

from collections.abc import Mapping

from fastapi import HTTPException

# Service-level error codes (the ValueError message) and how they surface over HTTP.
ERROR_STATUSES: dict[str, int] = {
    "group_not_found": 404,
    "user_not_found": 404,
    "inviter_not_found": 404,
    "profile_not_found": 404,
    "member_not_found": 404,
    "invalid_invite_code": 404,
    "email_taken": 409,
}

ERROR_MESSAGES: dict[str, str] = {
    "group_not_found": "Group not found",
    "user_not_found": "User not found",
    "inviter_not_found": "Inviting user not found",
    "profile_not_found": "Profile not found",
    "member_not_found": "Member not found in group",
    "invalid_invite_code": "Invalid invite code",
    "email_taken": "A profile with this email already exists",
    "not_joinable": "Group is not currently accepting members",
    "already_member": "User is already a member of this group",
    "group_full": "Group has reached maximum capacity",
    "invalid_role": "new_role must be either admin or member",
    "cannot_change_creator_role": "Cannot change the role of the group creator",
    "not_a_member": "User is not a member of this group",
    "target_not_a_member": "Target user is not a member of this group",
    "creator_cannot_leave": "Group creator must transfer ownership or delete group before leaving",
    "cannot_remove_creator": "Cannot remove group creator",
    "no_fields": "No valid fields to update",
    "invalid_schedule": "scheduled_start must be before scheduled_end",
    "schedule_in_past": "scheduled_start must be in the future",
    "schedule_required": "scheduled_start and scheduled_end are required for scheduled groups",
}


def permission_error(exc: PermissionError) -> HTTPException:
    return HTTPException(status_code=403, detail=str(exc))


def value_error(
    exc: ValueError,
    *,
    code_statuses: Mapping[str, int] | None = None,
    detail_overrides: Mapping[str, str] | None = None,
    default_status: int = 400,
    default_detail: str | None = None,
) -> HTTPException:
    raw_detail = str(exc)
    statuses = {**ERROR_STATUSES, **(code_statuses or {})}
    messages = {**ERROR_MESSAGES, **(detail_overrides or {})}

    if raw_detail in statuses or raw_detail in messages:
        return HTTPException(
            status_code=statuses.get(raw_detail, default_status),
            detail=messages.get(raw_detail, raw_detail),
        )

    return HTTPException(
        status_code=default_status,
        detail=default_detail if default_detail is not None else raw_detail,
    )
