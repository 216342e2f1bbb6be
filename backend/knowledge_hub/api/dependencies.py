"""Route Dependencies — caller identity, team access, and sync cursors.

Invariants:
    - Identity arrives pre-resolved from the upstream auth gateway as X-User-Id
      (UUID) and X-User-Tier headers; credentials never reach this service
    - A team id is only honored when the caller is a member; otherwise the request
      is answered exactly like a missing team (404)
    - `since` cursors are epoch milliseconds on the wire, aware UTC datetimes inside

Design Decisions:
    - Caller is a frozen dataclass: routes pass caller.user_id into services, never headers
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.core.domain_types import OwnerId, TeamId
from knowledge_hub.core.errors import MissingIdentityError, ResourceNotFoundError
from knowledge_hub.services.team_registry import TeamRegistry


@dataclass(frozen=True)
class Caller:
    user_id: OwnerId
    tier: str = "free"


async def get_caller(
    x_user_id: str | None = Header(None),
    x_user_tier: str = Header("free"),
) -> Caller:
    """Resolved identity forwarded by the auth gateway."""
    try:
        user_id = UUID(x_user_id) if x_user_id else None
    except ValueError:
        user_id = None
    if user_id is None:
        raise MissingIdentityError()
    return Caller(user_id=OwnerId(user_id), tier=x_user_tier)


async def resolve_team(
    db: AsyncSession, caller: Caller, team_id: UUID | None,
) -> TeamId | None:
    """Team scope for this request, or None. Non-members get a 404."""
    if team_id is None:
        return None
    if not await TeamRegistry(db).is_member(team_id, caller.user_id):
        raise ResourceNotFoundError("Team", str(team_id))
    return TeamId(team_id)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Last millisecond of 9999-12-31 UTC; datetime cannot represent later instants
MAX_CURSOR_MS = 253_402_300_799_999


def since_from_millis(since: int | None) -> datetime | None:
    if not since:
        return None
    return _EPOCH + timedelta(milliseconds=since)
