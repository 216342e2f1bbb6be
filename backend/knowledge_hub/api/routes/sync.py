"""Sync Routes — batch push and incremental pull for knowledge and session summaries.

Invariants:
    - Caller identity comes from get_caller; owner ids are never taken from the body
    - teamId is honored only for team members (resolve_team)
    - Pull cursors (`since`) are epoch milliseconds; no cursor continuation

Design Decisions:
    - Push responses keep the client protocol field names (accepted/skipped/updated)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.api.dependencies import (
    MAX_CURSOR_MS, Caller, get_caller, resolve_team, since_from_millis,
)
from knowledge_hub.infrastructure.database import get_db
from knowledge_hub.schemas.sync import PushKnowledgeRequest, PushSessionsRequest
from knowledge_hub.services.knowledge_reconciler import KnowledgeReconciler
from knowledge_hub.services.session_upserter import SessionUpserter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


@router.post("/push/knowledge")
async def push_knowledge(
    body: PushKnowledgeRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team_id = await resolve_team(db, caller, body.team_id)
    result = await KnowledgeReconciler(db).merge(
        caller.user_id, team_id, body.entries,
    )
    return {
        "accepted": result.inserted,
        "skipped": result.skipped,
        "failed": result.failed,
        "errors": result.errors,
    }


@router.post("/push/sessions")
async def push_sessions(
    body: PushSessionsRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team_id = await resolve_team(db, caller, body.team_id)
    result = await SessionUpserter(db).merge(
        caller.user_id, team_id, body.summaries,
    )
    return {
        "accepted": result.inserted,
        "updated": result.updated,
        "failed": result.failed,
        "errors": result.errors,
    }


@router.get("/pull/knowledge")
async def pull_knowledge(
    since: int | None = Query(None, ge=0, le=MAX_CURSOR_MS),
    team_id: UUID | None = Query(None, alias="teamId"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team = await resolve_team(db, caller, team_id)
    entries = await KnowledgeReconciler(db).pull(
        caller.user_id, team, since_from_millis(since),
    )
    return {"entries": [e.to_dict() for e in entries]}


@router.get("/pull/sessions")
async def pull_sessions(
    since: int | None = Query(None, ge=0, le=MAX_CURSOR_MS),
    team_id: UUID | None = Query(None, alias="teamId"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team = await resolve_team(db, caller, team_id)
    summaries = await SessionUpserter(db).pull(
        caller.user_id, team, since_from_millis(since),
    )
    return {"summaries": [s.to_dict() for s in summaries]}
