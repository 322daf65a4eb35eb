from __future__ import annotations

from datetime import datetime, timedelta, timezone

import anyio
import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from studyhub.db.session import AsyncSessionLocal, engine
from studyhub.models.group_membership import GroupMembership
from studyhub.services import groups as group_service
from studyhub.services.groups import (
    INVITE_CODE_ALPHABET,
    can_remove_member,
    create_group,
    generate_invite_code,
    join_group,
    join_group_by_invite_code,
    normalize_invite_code,
    summarize_memberships,
)
from studyhub.services.profiles import create_profile


def test_generated_codes_use_uppercase_alphanumerics():
    for _ in range(50):
        code = generate_invite_code()
        assert len(code) == 8
        assert set(code) <= set(INVITE_CODE_ALPHABET)
    assert len(generate_invite_code(12)) == 12


def test_normalize_invite_code():
    assert normalize_invite_code("  ab12cd34 ") == "AB12CD34"


@pytest.mark.parametrize(
    ("actor", "target", "allowed"),
    [
        ("creator", "admin", True),
        ("creator", "member", True),
        ("creator", "creator", False),
        ("admin", "member", True),
        ("admin", "admin", False),
        ("member", "member", False),
        (None, "member", False),
    ],
)
def test_can_remove_member(actor, target, allowed):
    assert can_remove_member(actor, target) is allowed


def test_summarize_memberships_counts_history():
    rows = [
        ("creator", "active"),
        ("admin", "active"),
        ("member", "active"),
        ("member", "active"),
        ("member", "left"),
        ("admin", "removed"),
        ("member", "removed"),
    ]
    assert summarize_memberships(rows) == {
        "total_members": 4,
        "creators": 1,
        "admins": 1,
        "regular_members": 2,
        "total_left": 1,
        "total_removed": 2,
    }
    assert summarize_memberships([])["total_members"] == 0


# --- Database-backed admission checks ---

NOW = datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc)


async def _profile(db, unique_str):
    return await create_profile(
        db,
        name=unique_str("student"),
        email=f"{unique_str('student')}@uni.example.com",
        faculty=None,
        course=None,
        year_of_study=None,
    )


@pytest.mark.anyio
async def test_invite_code_collision_regenerates(db_session, unique_str, monkeypatch):
    owner = await _profile(db_session, unique_str)
    first = await create_group(db_session, creator_id=owner.id, name="First", subject="CS", now=NOW)

    codes = iter([first.invite_code, first.invite_code, "FRESH123"])
    monkeypatch.setattr(group_service, "generate_invite_code", lambda length=None: next(codes))

    second = await create_group(db_session, creator_id=owner.id, name="Second", subject="CS", now=NOW)
    assert second.invite_code == "FRESH123"


@pytest.mark.anyio
async def test_invite_code_generation_gives_up(db_session, unique_str, monkeypatch):
    owner = await _profile(db_session, unique_str)
    first = await create_group(db_session, creator_id=owner.id, name="First", subject="CS", now=NOW)

    monkeypatch.setattr(group_service, "generate_invite_code", lambda length=None: first.invite_code)

    with pytest.raises(RuntimeError, match="unique invite code"):
        await create_group(db_session, creator_id=owner.id, name="Second", subject="CS", now=NOW)


@pytest.mark.anyio
async def test_private_group_without_active_members_needs_inviter(db_session, unique_str):
    owner = await _profile(db_session, unique_str)
    student = await _profile(db_session, unique_str)
    group = await create_group(
        db_session, creator_id=owner.id, name="Quiet Room", subject="Law", is_private=True, now=NOW
    )

    # only reachable when nobody is active, e.g. a creator row edited out of band
    await db_session.execute(
        sa.update(GroupMembership).where(GroupMembership.group_id == group.id).values(status="left")
    )
    await db_session.flush()

    with pytest.raises(PermissionError, match="connected to a group member"):
        await join_group(db_session, group_id=group.id, user_id=student.id, now=NOW)

    membership = await join_group(db_session, group_id=group.id, user_id=student.id, invited_by=owner.id, now=NOW)
    assert membership.invited_by == owner.id
    assert membership.role == "member"


@pytest.mark.anyio
async def test_capacity_boundary(db_session, unique_str):
    owner = await _profile(db_session, unique_str)
    group = await create_group(db_session, creator_id=owner.id, name="Trio", subject="Art", max_members=3, now=NOW)

    for _ in range(2):
        student = await _profile(db_session, unique_str)
        await join_group(db_session, group_id=group.id, user_id=student.id, now=NOW)

    late = await _profile(db_session, unique_str)
    with pytest.raises(ValueError, match="group_full"):
        await join_group(db_session, group_id=group.id, user_id=late.id, now=NOW)

    count = (
        await db_session.execute(
            sa.select(sa.func.count(GroupMembership.id)).where(
                GroupMembership.group_id == group.id,
                GroupMembership.status == "active",
            )
        )
    ).scalar_one()
    assert count == 3


@pytest.mark.anyio
async def test_scheduled_group_admits_only_inside_window(db_session, unique_str):
    owner = await _profile(db_session, unique_str)
    student = await _profile(db_session, unique_str)
    start = NOW + timedelta(hours=1)
    group = await create_group(
        db_session,
        creator_id=owner.id,
        name="Evening Revision",
        subject="History",
        is_scheduled=True,
        scheduled_start=start,
        scheduled_end=start + timedelta(hours=1),
        now=NOW,
    )
    assert group.status == "scheduled"

    with pytest.raises(ValueError, match="not_joinable"):
        await join_group(db_session, group_id=group.id, user_id=student.id, now=NOW)

    membership = await join_group(
        db_session, group_id=group.id, user_id=student.id, now=NOW + timedelta(minutes=90)
    )
    assert membership.status == "active"

    latecomer = await _profile(db_session, unique_str)
    with pytest.raises(ValueError, match="not_joinable"):
        await join_group(db_session, group_id=group.id, user_id=latecomer.id, now=NOW + timedelta(hours=3))


@pytest.mark.anyio
async def test_archived_group_rejects_invite_code(db_session, unique_str):
    owner = await _profile(db_session, unique_str)
    student = await _profile(db_session, unique_str)
    group = await create_group(db_session, creator_id=owner.id, name="Old Crew", subject="CS", now=NOW)
    group.status = "archived"
    await db_session.flush()

    with pytest.raises(ValueError, match="invalid_invite_code"):
        await join_group_by_invite_code(db_session, code=group.invite_code, user_id=student.id, now=NOW)


@pytest.mark.anyio
async def test_create_group_schedule_validation(db_session, unique_str):
    owner = await _profile(db_session, unique_str)

    with pytest.raises(ValueError, match="schedule_required"):
        await create_group(db_session, creator_id=owner.id, name="Half", subject="CS", is_scheduled=True, now=NOW)

    with pytest.raises(ValueError, match="schedule_in_past"):
        await create_group(
            db_session,
            creator_id=owner.id,
            name="Past",
            subject="CS",
            is_scheduled=True,
            scheduled_start=NOW - timedelta(minutes=5),
            scheduled_end=NOW + timedelta(hours=1),
            now=NOW,
        )


@pytest.mark.anyio
async def test_store_allows_one_active_row_per_member(db_session, unique_str):
    owner = await _profile(db_session, unique_str)
    student = await _profile(db_session, unique_str)
    group = await create_group(db_session, creator_id=owner.id, name="Index Check", subject="CS", now=NOW)
    await join_group(db_session, group_id=group.id, user_id=student.id, now=NOW)

    # history rows for the same pair are fine
    db_session.add(
        GroupMembership(group_id=group.id, user_id=student.id, role="member", status="left", joined_at=NOW, left_at=NOW)
    )
    await db_session.flush()

    db_session.add(GroupMembership(group_id=group.id, user_id=student.id, role="member", status="active", joined_at=NOW))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.anyio
async def test_store_allows_one_creator_per_group(db_session, unique_str):
    owner = await _profile(db_session, unique_str)
    other = await _profile(db_session, unique_str)
    group = await create_group(db_session, creator_id=owner.id, name="Index Check", subject="CS", now=NOW)

    db_session.add(GroupMembership(group_id=group.id, user_id=other.id, role="creator", status="active", joined_at=NOW))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.anyio
async def test_concurrent_joins_for_last_seat(db_session, unique_str):
    if engine.dialect.name != "postgresql":
        pytest.skip("row locks need PostgreSQL")

    owner = await _profile(db_session, unique_str)
    first = await _profile(db_session, unique_str)
    second = await _profile(db_session, unique_str)
    group = await create_group(db_session, creator_id=owner.id, name="Last Seat", subject="CS", max_members=2, now=NOW)
    await db_session.commit()

    outcomes: list[str] = []

    async def attempt(user_id):
        async with AsyncSessionLocal() as session:
            try:
                await join_group(session, group_id=group.id, user_id=user_id, now=NOW)
                await session.commit()
                outcomes.append("joined")
            except ValueError as e:
                await session.rollback()
                outcomes.append(str(e))

    async with anyio.create_task_group() as tg:
        tg.start_soon(attempt, first.id)
        tg.start_soon(attempt, second.id)

    assert sorted(outcomes) == ["group_full", "joined"]

    count = (
        await db_session.execute(
            sa.select(sa.func.count(GroupMembership.id)).where(
                GroupMembership.group_id == group.id,
                GroupMembership.status == "active",
            )
        )
    ).scalar_one()
    assert count == 2
