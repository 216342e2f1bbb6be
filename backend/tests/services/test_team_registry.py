"""Team Registry — atomic creation with owner membership, owner-managed members.

Invariants tested:
    - Team and owner membership are created together
    - Only the owner adds members; duplicates are a conflict
    - Outsiders get not-found, never a hint that the team exists
    - The owner row cannot be removed; a member may leave on their own
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from knowledge_hub.core.errors import (
    DuplicateRecordError, ForbiddenError, ResourceNotFoundError, ValidationFailure,
)
from knowledge_hub.models.team import TeamMember
from knowledge_hub.services.team_registry import TeamRegistry


@pytest.fixture
async def team_with_owner(test_db):
    owner = uuid4()
    team = await TeamRegistry(test_db).create_team(owner, "Platform")
    return team, owner


async def test_create_team_adds_owner_membership(test_db):
    owner = uuid4()
    team = await TeamRegistry(test_db).create_team(owner, "Platform")

    result = await test_db.execute(
        select(TeamMember).where(TeamMember.team_id == team.id),
    )
    members = result.scalars().all()
    assert len(members) == 1
    assert members[0].user_id == owner
    assert members[0].role == "owner"


async def test_list_teams_returns_role(test_db):
    owner = uuid4()
    registry = TeamRegistry(test_db)
    await registry.create_team(owner, "Platform")

    teams = await registry.list_teams(owner)
    assert [(t["name"], t["role"]) for t in teams] == [("Platform", "owner")]
    assert await registry.list_teams(uuid4()) == []


async def test_is_member(test_db):
    owner = uuid4()
    registry = TeamRegistry(test_db)
    team = await registry.create_team(owner, "Platform")

    assert await registry.is_member(team.id, owner) is True
    assert await registry.is_member(team.id, uuid4()) is False


# ─── Membership ─────────────────────────────────────────────────

async def test_owner_adds_member_who_then_sees_the_team(test_db, team_with_owner):
    team, owner = team_with_owner
    registry = TeamRegistry(test_db)
    newcomer = uuid4()

    member = await registry.add_member(team.id, owner, newcomer)

    assert member.role == "member"
    assert await registry.role_of(team.id, newcomer) == "member"
    assert [t["role"] for t in await registry.list_teams(newcomer)] == ["member"]
    members = await registry.list_members(team.id, newcomer)
    assert {(m["user_id"], m["role"]) for m in members} == {
        (str(owner), "owner"), (str(newcomer), "member"),
    }


async def test_member_cannot_add_members(test_db, team_with_owner):
    team, owner = team_with_owner
    registry = TeamRegistry(test_db)
    member = uuid4()
    await registry.add_member(team.id, owner, member)

    with pytest.raises(ForbiddenError):
        await registry.add_member(team.id, member, uuid4())


async def test_outsider_gets_not_found(test_db, team_with_owner):
    team, _ = team_with_owner
    registry = TeamRegistry(test_db)
    outsider = uuid4()

    with pytest.raises(ResourceNotFoundError):
        await registry.add_member(team.id, outsider, uuid4())
    with pytest.raises(ResourceNotFoundError):
        await registry.list_members(team.id, outsider)
    with pytest.raises(ResourceNotFoundError):
        await registry.remove_member(team.id, outsider, outsider)


async def test_adding_existing_member_is_a_conflict(test_db, team_with_owner):
    team, owner = team_with_owner
    registry = TeamRegistry(test_db)
    member = uuid4()
    await registry.add_member(team.id, owner, member)

    with pytest.raises(DuplicateRecordError):
        await registry.add_member(team.id, owner, member)
    with pytest.raises(DuplicateRecordError):
        await registry.add_member(team.id, owner, owner)


async def test_owner_cannot_be_removed(test_db, team_with_owner):
    team, owner = team_with_owner
    registry = TeamRegistry(test_db)

    with pytest.raises(ValidationFailure) as exc_info:
        await registry.remove_member(team.id, owner, owner)
    assert exc_info.value.field == "userId"
    assert await registry.is_member(team.id, owner) is True


async def test_member_removal_rules(test_db, team_with_owner):
    team, owner = team_with_owner
    registry = TeamRegistry(test_db)
    alice, bob = uuid4(), uuid4()
    await registry.add_member(team.id, owner, alice)
    await registry.add_member(team.id, owner, bob)

    with pytest.raises(ForbiddenError):
        await registry.remove_member(team.id, alice, bob)

    await registry.remove_member(team.id, alice, alice)
    await registry.remove_member(team.id, owner, bob)

    assert await registry.is_member(team.id, alice) is False
    assert await registry.is_member(team.id, bob) is False
    with pytest.raises(ResourceNotFoundError):
        await registry.remove_member(team.id, owner, bob)
