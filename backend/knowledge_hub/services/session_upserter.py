"""Session Upserter — last-write-wins merge of session summaries keyed by (owner, session).

Invariants:
    - At most one row per (user_id, session_id), enforced by the UNIQUE constraint
    - A later push always replaces payload and project: no timestamp comparison,
      no merging of payload contents
    - Each summary is its own transaction; a failing item is counted, the batch goes on
    - pull() filters on created_at, newest first, capped at PULL_PAGE_SIZE

Design Decisions:
    - Single INSERT ... ON CONFLICT DO UPDATE ... RETURNING updated_at: atomic upsert,
      and updated_at IS NULL in the returned row tells "inserted" from "updated"
    - Payload is an opaque document, stored as given
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.core.domain_types import OwnerId, SessionMergeResult, TeamId
from knowledge_hub.db.base import utcnow
from knowledge_hub.infrastructure.database import dialect_insert
from knowledge_hub.models.session_summary import SessionSummary
from knowledge_hub.schemas.sync import SessionSummaryIn

logger = logging.getLogger(__name__)

PULL_PAGE_SIZE = 200


def _visible_to(owner_id: OwnerId, team_id: TeamId | None):
    if team_id is None:
        return SessionSummary.user_id == owner_id
    return or_(
        SessionSummary.user_id == owner_id, SessionSummary.team_id == team_id,
    )


class SessionUpserter:
    """Upserts session summaries and serves them back to their owner/team."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def merge(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None,
        summaries: list[SessionSummaryIn],
    ) -> SessionMergeResult:
        result = SessionMergeResult()
        for item in summaries:
            try:
                inserted = await self.upsert(owner_id, team_id, item)
            except SQLAlchemyError:
                await self.db.rollback()
                result.failed += 1
                result.record_error("Storage failure while merging session summary")
                logger.error(
                    "Session summary merge failed for one item",
                    extra={"owner_id": owner_id, "operation": "sessions.merge"},
                    exc_info=True,
                )
                continue
            if inserted:
                result.inserted += 1
            else:
                result.updated += 1

        logger.info(
            "Session batch merged",
            extra={
                "owner_id": owner_id, "inserted": result.inserted,
                "updated": result.updated, "failed": result.failed,
            },
        )
        return result

    async def upsert(
        self, owner_id: OwnerId, team_id: TeamId | None, item: SessionSummaryIn,
    ) -> bool:
        """Insert or replace one summary. Returns True when a new row was inserted."""
        stmt = dialect_insert(self.db, SessionSummary).values(
            id=uuid.uuid4(),
            user_id=owner_id,
            team_id=team_id,
            session_id=item.session_id,
            project=item.project,
            summary=item.summary,
            created_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "session_id"],
            set_={
                "summary": stmt.excluded.summary,
                "project": stmt.excluded.project,
                "updated_at": utcnow(),
            },
        ).returning(SessionSummary.updated_at)
        updated_at = (await self.db.execute(stmt)).scalar_one()
        await self.db.commit()
        return updated_at is None

    async def pull(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None = None,
        since: datetime | None = None,
    ) -> list[SessionSummary]:
        stmt = select(SessionSummary).where(_visible_to(owner_id, team_id))
        if since is not None:
            stmt = stmt.where(SessionSummary.created_at > since)
        stmt = stmt.order_by(SessionSummary.created_at.desc()).limit(PULL_PAGE_SIZE)
        stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_summaries(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None = None,
        project: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[SessionSummary], int]:
        predicates = [_visible_to(owner_id, team_id)]
        if project:
            predicates.append(SessionSummary.project == project)
        total = await self.db.scalar(
            select(func.count()).select_from(SessionSummary).where(*predicates),
        )
        result = await self.db.execute(
            select(SessionSummary)
            .where(*predicates)
            .order_by(SessionSummary.created_at.desc())
            .limit(limit)
            .offset(offset),
        )
        return list(result.scalars().all()), total or 0

    async def get(
        self, owner_id: OwnerId, session_id: str,
    ) -> SessionSummary | None:
        """Owner's summary for a client session id, or None (absent or foreign)."""
        result = await self.db.execute(
            select(SessionSummary).where(
                SessionSummary.user_id == owner_id,
                SessionSummary.session_id == session_id,
            ).execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()
