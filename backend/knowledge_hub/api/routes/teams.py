"""Team Routes — create teams, list memberships, and manage members.

Invariants:
    - Team creation is atomic with the owner's membership row
    - Role checks live in TeamRegistry; routes only translate ids
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.api.dependencies import Caller, get_caller
from knowledge_hub.core.domain_types import OwnerId, TeamId
from knowledge_hub.infrastructure.database import get_db
from knowledge_hub.schemas.team import TeamCreate, TeamMemberAdd
from knowledge_hub.services.team_registry import TeamRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/teams", tags=["teams"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team(
    body: TeamCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team = await TeamRegistry(db).create_team(caller.user_id, body.name)
    return {
        "id": str(team.id),
        "name": team.name,
        "owner_id": str(team.owner_id),
        "created_at": team.created_at.isoformat(),
    }


@router.get("")
async def list_teams(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"teams": await TeamRegistry(db).list_teams(caller.user_id)}


# ─── Members ────────────────────────────────────────────────────

@router.post("/{team_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(
    team_id: UUID,
    body: TeamMemberAdd,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    member = await TeamRegistry(db).add_member(
        TeamId(team_id), caller.user_id, OwnerId(body.user_id),
    )
    return {"added": True, "user_id": str(member.user_id), "role": member.role}


@router.get("/{team_id}/members")
async def list_members(
    team_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    members = await TeamRegistry(db).list_members(TeamId(team_id), caller.user_id)
    return {"members": members}


@router.delete("/{team_id}/members/{user_id}")
async def remove_member(
    team_id: UUID,
    user_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    await TeamRegistry(db).remove_member(
        TeamId(team_id), caller.user_id, OwnerId(user_id),
    )
    return {"removed": True}
