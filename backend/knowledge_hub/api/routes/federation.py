"""Federation Routes — anonymous pattern contribution and the gated public catalog.

Invariants:
    - No caller identity: contributions carry only an opaque contributor hash
    - Every read goes through PatternAggregator's k-anonymity gate; a pattern below the
      threshold is a 404 here, indistinguishable from a missing one
    - Per-pattern failures never fail the request: they come back as rejected/errors

Design Decisions:
    - tags filter is a comma-separated list (any-overlap semantics)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.core.domain_types import ContributorHash, PatternId
from knowledge_hub.core.errors import ResourceNotFoundError
from knowledge_hub.infrastructure.database import get_db
from knowledge_hub.schemas.federation import ContributeRequest
from knowledge_hub.services.pattern_aggregator import PatternAggregator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/federation", tags=["federation"])


def _split_tags(tags: str | None) -> list[str] | None:
    if not tags:
        return None
    parts = [t.strip() for t in tags.split(",") if t.strip()]
    return parts or None


@router.post("/contribute")
async def contribute(
    body: ContributeRequest, db: AsyncSession = Depends(get_db),
):
    result = await PatternAggregator(db).contribute(
        ContributorHash(body.contributor_hash), body.patterns,
    )
    return result.to_dict()


@router.get("/patterns")
async def list_patterns(
    category: str | None = Query(None, max_length=255),
    platform: str | None = Query(None, max_length=255),
    tags: str | None = Query(None, max_length=1000),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    page = await PatternAggregator(db).list_patterns(
        category, platform, _split_tags(tags), limit, offset,
    )
    return {
        "patterns": [p.to_dict() for p in page.rows],
        "total": page.total,
        "offset": offset,
        "limit": limit,
    }


@router.get("/patterns/search")
async def search_patterns(
    q: str = Query(min_length=1, max_length=500),
    category: str | None = Query(None, max_length=255),
    platform: str | None = Query(None, max_length=255),
    tags: str | None = Query(None, max_length=1000),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    page = await PatternAggregator(db).search_patterns(
        q, category, platform, _split_tags(tags), limit, offset,
    )
    return {
        "patterns": [p.to_dict() for p in page.rows],
        "total": page.total,
        "offset": offset,
        "limit": limit,
    }


@router.get("/patterns/{pattern_id}")
async def get_pattern(
    pattern_id: UUID, db: AsyncSession = Depends(get_db),
):
    pattern = await PatternAggregator(db).get_pattern(PatternId(pattern_id))
    if pattern is None:
        raise ResourceNotFoundError("Pattern", str(pattern_id))
    return pattern.to_dict()


@router.get("/stats")
async def stats(db: AsyncSession = Depends(get_db)):
    return await PatternAggregator(db).stats()
