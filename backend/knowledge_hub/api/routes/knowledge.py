"""Knowledge Routes — owner-scoped CRUD and private full-text search.

Invariants:
    - Ownership enforced in the service by user_id equality
    - A missing or foreign entry is always answered with the same 404
    - /search is registered before /{entry_id} so it is not captured as an id

Design Decisions:
    - POST returns 201 for a new entry and 200 with the existing id when the soft key
      already exists for this owner
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.api.dependencies import Caller, get_caller, resolve_team
from knowledge_hub.core.domain_types import KnowledgeId
from knowledge_hub.core.errors import ResourceNotFoundError
from knowledge_hub.infrastructure.database import get_db
from knowledge_hub.schemas.knowledge import KnowledgeCreate, KnowledgeUpdate
from knowledge_hub.services.knowledge_reconciler import KnowledgeReconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/knowledge", tags=["knowledge"])


@router.post("")
async def create_entry(
    body: KnowledgeCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team_id = await resolve_team(db, caller, body.team_id)
    entry_id, created = await KnowledgeReconciler(db).create(
        caller.user_id, team_id, body,
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content={"id": str(entry_id), "created": created},
    )


@router.get("")
async def list_entries(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    project: str | None = Query(None, max_length=255),
    entry_type: str | None = Query(None, alias="type", max_length=20),
    team_id: UUID | None = Query(None, alias="teamId"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team = await resolve_team(db, caller, team_id)
    entries, total = await KnowledgeReconciler(db).list_entries(
        caller.user_id, team, project, entry_type, limit, offset,
    )
    return {
        "entries": [e.to_dict() for e in entries],
        "total": total,
        "pagination": {"limit": limit, "offset": offset},
    }


@router.get("/search")
async def search_entries(
    q: str = Query(min_length=1, max_length=500),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    project: str | None = Query(None, max_length=255),
    entry_type: str | None = Query(None, alias="type", max_length=20),
    team_id: UUID | None = Query(None, alias="teamId"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    team = await resolve_team(db, caller, team_id)
    page = await KnowledgeReconciler(db).search(
        caller.user_id, team, q, project, entry_type, limit, offset,
    )
    return {
        "entries": [e.to_dict() for e in page.rows],
        "total": page.total,
        "pagination": {"limit": limit, "offset": offset},
    }


@router.get("/{entry_id}")
async def get_entry(
    entry_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    entry = await KnowledgeReconciler(db).get(KnowledgeId(entry_id), caller.user_id)
    if entry is None:
        raise ResourceNotFoundError("Knowledge entry", str(entry_id))
    return entry.to_dict()


@router.patch("/{entry_id}")
async def update_entry(
    entry_id: UUID,
    body: KnowledgeUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    applied = await KnowledgeReconciler(db).update(
        KnowledgeId(entry_id), caller.user_id, body.model_dump(exclude_unset=True),
    )
    if not applied:
        raise ResourceNotFoundError("Knowledge entry", str(entry_id))
    return {"updated": True}


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: UUID,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    if not await KnowledgeReconciler(db).delete(KnowledgeId(entry_id), caller.user_id):
        raise ResourceNotFoundError("Knowledge entry", str(entry_id))
    return {"deleted": True}
