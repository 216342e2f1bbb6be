"""Knowledge Reconciler — soft-key dedup on push, incremental pull, owner-scoped CRUD.

Invariants:
    - Soft key (type, project-or-null, summary) is scoped to the owner: two owners
      never merge into each other's records
    - merge() processes records in submission order, one transaction per record;
      a failing record never rolls back records committed before it
    - Logical timestamp only moves forward: max(existing, incoming)
    - Resubmitting a batch is idempotent (no new rows, timestamps unchanged or advanced)
    - get/update/delete check ownership by user_id equality; "absent" and "not yours"
      are indistinguishable to the caller
    - pull() is capped at PULL_PAGE_SIZE, newest updated_at first, no cursor

Design Decisions:
    - Every write path (push, direct create) goes through find_or_create_by_key so the
      UNIQUE (user_id, soft_key) constraint is the final arbiter under concurrency
    - Storage failures inside a batch are counted and reported generically; the
      detail only goes to the log
"""

import logging
from datetime import datetime
from functools import partial

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.core.derived_keys import knowledge_soft_key
from knowledge_hub.core.domain_types import (
    KnowledgeId, KnowledgeMergeResult, OwnerId, TeamId,
)
from knowledge_hub.core.errors import DuplicateRecordError
from knowledge_hub.db.base import utcnow
from knowledge_hub.models.knowledge_entry import KnowledgeEntry
from knowledge_hub.schemas.knowledge import KnowledgeEntryIn
from knowledge_hub.services.derived_key import find_or_create_by_key
from knowledge_hub.services.search_backend import (
    SearchPage, WeightedField, ranked_search,
)

logger = logging.getLogger(__name__)

PULL_PAGE_SIZE = 500
_MUTABLE_FIELDS = ("summary", "details", "tags", "related_files")
_SEARCH_FIELDS = (
    WeightedField(KnowledgeEntry.summary, "A"),
    WeightedField(KnowledgeEntry.details, "B"),
)


def _visible_to(owner_id: OwnerId, team_id: TeamId | None):
    """Own records, plus the team's records when a team is given."""
    if team_id is None:
        return KnowledgeEntry.user_id == owner_id
    return or_(
        KnowledgeEntry.user_id == owner_id, KnowledgeEntry.team_id == team_id,
    )


class KnowledgeReconciler:
    """Merges pushed knowledge into an owner's records and serves them back."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Push / create ──────────────────────────────────────────

    async def merge(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None,
        entries: list[KnowledgeEntryIn],
    ) -> KnowledgeMergeResult:
        """Merge a pushed batch. Returns inserted/skipped/failed counters."""
        result = KnowledgeMergeResult()
        for entry in entries:
            try:
                _, created = await self._upsert(owner_id, team_id, entry)
            except SQLAlchemyError:
                await self.db.rollback()
                result.failed += 1
                result.record_error("Storage failure while merging entry")
                logger.error(
                    "Knowledge merge failed for one entry",
                    extra={"owner_id": owner_id, "operation": "knowledge.merge"},
                    exc_info=True,
                )
                continue
            if created:
                result.inserted += 1
            else:
                result.skipped += 1

        logger.info(
            "Knowledge batch merged",
            extra={
                "owner_id": owner_id, "inserted": result.inserted,
                "skipped": result.skipped, "failed": result.failed,
            },
        )
        return result

    async def create(
        self, owner_id: OwnerId, team_id: TeamId | None, entry: KnowledgeEntryIn,
    ) -> tuple[KnowledgeId, bool]:
        """Create a single entry; returns (id, created). Same soft key → existing id."""
        return await self._upsert(owner_id, team_id, entry)

    async def _upsert(
        self, owner_id: OwnerId, team_id: TeamId | None, entry: KnowledgeEntryIn,
    ) -> tuple[KnowledgeId, bool]:
        soft_key = knowledge_soft_key(entry.type, entry.project, entry.summary)
        touched: dict[str, KnowledgeId] = {}

        async def create() -> None:
            row = KnowledgeEntry(
                user_id=owner_id,
                team_id=team_id,
                type=entry.type,
                project=entry.project,
                session_id=entry.session_id,
                timestamp=entry.timestamp,
                summary=entry.summary,
                details=entry.details,
                tags=list(entry.tags),
                related_files=list(entry.related_files),
                soft_key=soft_key,
            )
            self.db.add(row)
            await self.db.flush()
            touched["id"] = KnowledgeId(row.id)

        created = await find_or_create_by_key(
            self.db,
            select(KnowledgeEntry).where(
                KnowledgeEntry.user_id == owner_id,
                KnowledgeEntry.soft_key == soft_key,
            ),
            create=create,
            merge=partial(self._advance, incoming=entry.timestamp, touched=touched),
        )
        return touched["id"], created

    @staticmethod
    async def _advance(
        row: KnowledgeEntry, incoming: int, touched: dict[str, KnowledgeId],
    ) -> None:
        """Advance logical timestamp (never regress) and touch updated_at."""
        known = [t for t in (row.timestamp, incoming) if t is not None]
        row.timestamp = max(known) if known else None
        row.updated_at = utcnow()
        touched["id"] = KnowledgeId(row.id)

    # ─── Pull ───────────────────────────────────────────────────

    async def pull(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None = None,
        since: datetime | None = None,
    ) -> list[KnowledgeEntry]:
        """Records updated strictly after `since`, newest first, capped."""
        stmt = select(KnowledgeEntry).where(_visible_to(owner_id, team_id))
        if since is not None:
            stmt = stmt.where(KnowledgeEntry.updated_at > since)
        stmt = stmt.order_by(KnowledgeEntry.updated_at.desc()).limit(PULL_PAGE_SIZE)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ─── Owner-scoped CRUD ──────────────────────────────────────

    async def get(
        self, entry_id: KnowledgeId, owner_id: OwnerId,
    ) -> KnowledgeEntry | None:
        result = await self.db.execute(
            select(KnowledgeEntry).where(
                KnowledgeEntry.id == entry_id,
                KnowledgeEntry.user_id == owner_id,
            ),
        )
        return result.scalar_one_or_none()

    async def list_entries(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None = None,
        project: str | None = None,
        entry_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[KnowledgeEntry], int]:
        """Paginated listing ordered by logical timestamp, newest first."""
        predicates = [_visible_to(owner_id, team_id)]
        if project:
            predicates.append(KnowledgeEntry.project == project)
        if entry_type:
            predicates.append(KnowledgeEntry.type == entry_type)

        total = await self.db.scalar(
            select(func.count()).select_from(KnowledgeEntry).where(*predicates),
        )
        result = await self.db.execute(
            select(KnowledgeEntry)
            .where(*predicates)
            .order_by(KnowledgeEntry.timestamp.desc())
            .limit(limit)
            .offset(offset),
        )
        return list(result.scalars().all()), total or 0

    async def update(
        self, entry_id: KnowledgeId, owner_id: OwnerId, changes: dict,
    ) -> bool:
        """Replace mutable fields. False when nothing applied (absent, foreign, empty)."""
        changes = {k: v for k, v in changes.items() if k in _MUTABLE_FIELDS}
        if not changes:
            return False
        row = await self.get(entry_id, owner_id)
        if row is None:
            return False

        for name, value in changes.items():
            setattr(row, name, value)
        row.soft_key = knowledge_soft_key(row.type, row.project, row.summary)
        row.updated_at = utcnow()
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateRecordError("knowledge entry")
        return True

    async def delete(self, entry_id: KnowledgeId, owner_id: OwnerId) -> bool:
        result = await self.db.execute(
            delete(KnowledgeEntry).where(
                KnowledgeEntry.id == entry_id,
                KnowledgeEntry.user_id == owner_id,
            ),
        )
        await self.db.commit()
        return (result.rowcount or 0) > 0

    # ─── Search ─────────────────────────────────────────────────

    async def search(
        self,
        owner_id: OwnerId,
        team_id: TeamId | None,
        q: str,
        project: str | None = None,
        entry_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchPage:
        """Full-text search over summary (A) and details (B) of visible records."""
        predicates = [_visible_to(owner_id, team_id)]
        if project:
            predicates.append(KnowledgeEntry.project == project)
        if entry_type:
            predicates.append(KnowledgeEntry.type == entry_type)
        return await ranked_search(
            self.db,
            KnowledgeEntry,
            predicates,
            _SEARCH_FIELDS,
            q,
            order_after_rank=[KnowledgeEntry.timestamp.desc()],
            tiebreak_key=lambda row: (row.timestamp or 0,),
            limit=limit,
            offset=offset,
        )
