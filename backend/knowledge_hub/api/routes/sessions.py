"""Session Routes — single-summary push, listing, and lookup by client session id.

Invariants:
    - Push is an upsert: a second push for the same session id replaces the first
    - Lookup is owner-only; a foreign session id is answered with 404
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.api.dependencies import Caller, get_caller, resolve_team
from knowledge_hub.core.errors import ResourceNotFoundError
from knowledge_hub.infrastructure.database import get_db
from knowledge_hub.schemas.sync import SessionSummaryCreate
from knowledge_hub.services.session_upserter import SessionUpserter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


@router.post("")
async def push_session(
    body: SessionSummaryCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team_id = await resolve_team(db, caller, body.team_id)
    inserted = await SessionUpserter(db).upsert(caller.user_id, team_id, body)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if inserted else status.HTTP_200_OK,
        content={"session_id": body.session_id, "inserted": inserted},
    )


@router.get("")
async def list_sessions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    project: str | None = Query(None, max_length=255),
    team_id: UUID | None = Query(None, alias="teamId"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team = await resolve_team(db, caller, team_id)
    summaries, total = await SessionUpserter(db).list_summaries(
        caller.user_id, team, project, limit, offset,
    )
    return {
        "summaries": [s.to_dict() for s in summaries],
        "total": total,
        "pagination": {"limit": limit, "offset": offset},
    }


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    summary = await SessionUpserter(db).get(caller.user_id, session_id)
    if summary is None:
        raise ResourceNotFoundError("Session", session_id)
    return summary.to_dict()
