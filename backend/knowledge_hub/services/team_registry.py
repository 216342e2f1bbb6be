"""Team Registry — atomic team creation and owner-managed membership.

Invariants:
    - create_team() persists the team AND the owner's membership row in one
      transaction: both commit or neither does
    - Only the owner adds members; the owner removes anyone, a member removes only
      themselves; the owner row itself is never removed
    - A caller outside the team gets the same 404 as for a missing team
    - (team_id, user_id) is unique: adding an existing member is a conflict

Design Decisions:
    - Flush before adding the membership so the team id exists for the FK, commit once
    - Members are added by user id: identity is resolved upstream, there is no user
      directory here to look up by email
"""

import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.core.domain_types import OwnerId, TeamId, TeamRole
from knowledge_hub.core.errors import (
    DuplicateRecordError, ForbiddenError, ResourceNotFoundError, ValidationFailure,
)
from knowledge_hub.models.team import Team, TeamMember

logger = logging.getLogger(__name__)


class TeamRegistry:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_team(self, owner_id: OwnerId, name: str) -> Team:
        try:
            team = Team(name=name, owner_id=owner_id)
            self.db.add(team)
            await self.db.flush()
            self.db.add(TeamMember(
                team_id=team.id, user_id=owner_id, role=TeamRole.OWNER.value,
            ))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.info(
            "Team created", extra={"owner_id": owner_id, "team_id": team.id},
        )
        return team

    async def list_teams(self, user_id: OwnerId) -> list[dict]:
        """Teams the user belongs to, newest first, with the user's role."""
        result = await self.db.execute(
            select(Team, TeamMember.role)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.created_at.desc()),
        )
        return [
            {
                "id": str(team.id),
                "name": team.name,
                "owner_id": str(team.owner_id),
                "role": role,
                "created_at": team.created_at.isoformat(),
            }
            for team, role in result.all()
        ]

    async def role_of(self, team_id: TeamId | UUID, user_id: OwnerId) -> str | None:
        result = await self.db.execute(
            select(TeamMember.role).where(
                TeamMember.team_id == team_id, TeamMember.user_id == user_id,
            ),
        )
        return result.scalar_one_or_none()

    async def is_member(self, team_id: TeamId | UUID, user_id: OwnerId) -> bool:
        return await self.role_of(team_id, user_id) is not None

    async def _require_role(self, team_id: TeamId, user_id: OwnerId) -> str:
        role = await self.role_of(team_id, user_id)
        if role is None:
            raise ResourceNotFoundError("Team", str(team_id))
        return role

    # ─── Membership ─────────────────────────────────────────────

    async def add_member(
        self, team_id: TeamId, requester_id: OwnerId, user_id: OwnerId,
    ) -> TeamMember:
        if await self._require_role(team_id, requester_id) != TeamRole.OWNER.value:
            raise ForbiddenError("Only team owners can add members")
        if await self.is_member(team_id, user_id):
            raise DuplicateRecordError("team member")

        member = TeamMember(
            team_id=team_id, user_id=user_id, role=TeamRole.MEMBER.value,
        )
        self.db.add(member)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateRecordError("team member")
        logger.info(
            "Team member added",
            extra={"owner_id": requester_id, "team_id": team_id},
        )
        return member

    async def list_members(
        self, team_id: TeamId, requester_id: OwnerId,
    ) -> list[dict]:
        """Members in join order. Only visible to members."""
        await self._require_role(team_id, requester_id)
        result = await self.db.execute(
            select(TeamMember)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at),
        )
        return [
            {
                "user_id": str(m.user_id),
                "role": m.role,
                "joined_at": m.joined_at.isoformat(),
            }
            for m in result.scalars().all()
        ]

    async def remove_member(
        self, team_id: TeamId, requester_id: OwnerId, user_id: OwnerId,
    ) -> None:
        role = await self._require_role(team_id, requester_id)
        if role != TeamRole.OWNER.value and requester_id != user_id:
            raise ForbiddenError("Only team owners can remove other members")

        target_role = await self.role_of(team_id, user_id)
        if target_role is None:
            raise ResourceNotFoundError("Team member", str(user_id))
        if target_role == TeamRole.OWNER.value:
            raise ValidationFailure("Cannot remove the team owner", field="userId")

        await self.db.execute(
            delete(TeamMember).where(
                TeamMember.team_id == team_id, TeamMember.user_id == user_id,
            ),
        )
        await self.db.commit()
        logger.info(
            "Team member removed",
            extra={"owner_id": requester_id, "team_id": team_id},
        )
