"""Pattern Aggregator — anonymous contributions, fingerprint merge, k-anonymity gate.

Invariants:
    - Dedup key is the content fingerprint (category + normalized approach), never the
      caller-supplied id
    - One transaction per pattern: lock-or-create, ledger entry, recount, effectiveness
    - contributor_count is always re-derived from the ledger (COUNT DISTINCT), never
      hand-set; the ledger is the source of truth
    - (pattern, contributor_hash) ledger entries are unique; resubmission is a no-op
      for the count
    - Every read path applies contributor_count >= K_ANONYMITY_THRESHOLD FIRST,
      before filters, ranking, counting, or single-row fetches
    - Patterns are never deleted here
    - A failing pattern (validation or storage) is counted as rejected; the batch goes on

Design Decisions:
    - Per-item pydantic validation: the caller gets the validation message verbatim,
      storage failures get a generic message (details only in logs)
    - Effectiveness uses the stored count before the ledger re-sync (see
      core/federation_policy.py); the row lock keeps concurrent merges serialized
    - stats() distinct-contributor total is ungated: it reports ecosystem
      participation, not per-pattern exposure
"""

import logging
import uuid

from pydantic import ValidationError
from sqlalchemy import desc, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowledge_hub.core.derived_keys import pattern_fingerprint
from knowledge_hub.core.domain_types import (
    ContributionResult, ContributorHash, PatternId,
)
from knowledge_hub.core.federation_policy import (
    K_ANONYMITY_THRESHOLD, clamp_effectiveness, is_visible, merge_effectiveness,
)
from knowledge_hub.db.base import utcnow
from knowledge_hub.infrastructure.database import dialect_insert
from knowledge_hub.infrastructure.observability import redact_hash
from knowledge_hub.models.community_pattern import CommunityPattern
from knowledge_hub.models.pattern_contribution import PatternContribution
from knowledge_hub.schemas.federation import PatternSubmission
from knowledge_hub.services.derived_key import find_or_create_by_key
from knowledge_hub.services.search_backend import (
    SearchPage, WeightedField, ranked_search, tags_overlap,
)

logger = logging.getLogger(__name__)

TOP_CATEGORIES = 10
_SEARCH_FIELDS = (
    WeightedField(CommunityPattern.category, "A"),
    WeightedField(CommunityPattern.approach, "B"),
    WeightedField(CommunityPattern.platform, "C"),
)


def k_anonymity_gate():
    """The visibility predicate every public read starts from."""
    return CommunityPattern.contributor_count >= K_ANONYMITY_THRESHOLD


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "pattern"
    return f"{location}: {first['msg']}"


class PatternAggregator:
    """Aggregates anonymous pattern contributions into the shared catalog."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Contribute ─────────────────────────────────────────────

    async def contribute(
        self, contributor_hash: ContributorHash, patterns: list[dict],
    ) -> ContributionResult:
        result = ContributionResult()
        for raw in patterns:
            try:
                submission = PatternSubmission.model_validate(raw)
            except ValidationError as e:
                result.rejected += 1
                result.record_error(_validation_message(e))
                continue

            try:
                created = await self._absorb(contributor_hash, submission)
            except SQLAlchemyError:
                await self.db.rollback()
                result.rejected += 1
                result.record_error("Storage failure while merging pattern")
                logger.error(
                    "Pattern contribution failed",
                    extra={
                        "contributor": redact_hash(contributor_hash),
                        "operation": "federation.contribute",
                    },
                    exc_info=True,
                )
                continue

            if created:
                result.accepted += 1
            else:
                result.merged += 1

        logger.info(
            "Pattern contribution processed",
            extra={
                "contributor": redact_hash(contributor_hash),
                "accepted": result.accepted, "merged": result.merged,
                "rejected": result.rejected,
            },
        )
        return result

    async def _absorb(
        self, contributor_hash: ContributorHash, submission: PatternSubmission,
    ) -> bool:
        """Merge one validated submission. True when a new pattern was created."""
        fingerprint = pattern_fingerprint(submission.category, submission.approach)
        now = utcnow()

        async def create() -> None:
            pattern = CommunityPattern(
                type=submission.type.value,
                category=submission.category,
                platform=submission.platform or None,
                approach=submission.approach,
                tags=list(submission.tags),
                effectiveness=clamp_effectiveness(submission.effectiveness),
                contributor_count=1,
                first_seen=now,
                last_seen=now,
                hash=fingerprint,
            )
            self.db.add(pattern)
            await self.db.flush()
            await self._record_contribution(pattern.id, contributor_hash)

        async def merge(pattern: CommunityPattern) -> None:
            await self._record_contribution(pattern.id, contributor_hash)
            distinct_count = await self.distinct_contributors(pattern.id)
            pattern.effectiveness = merge_effectiveness(
                pattern.effectiveness, pattern.contributor_count,
                submission.effectiveness,
            )
            if not is_visible(pattern.contributor_count) and is_visible(distinct_count):
                logger.info(
                    "Pattern reached the k-anonymity threshold",
                    extra={"operation": "federation.contribute"},
                )
            pattern.contributor_count = distinct_count
            pattern.last_seen = now

        return await find_or_create_by_key(
            self.db,
            select(CommunityPattern).where(CommunityPattern.hash == fingerprint),
            create=create,
            merge=merge,
        )

    async def _record_contribution(
        self, pattern_id: PatternId, contributor_hash: ContributorHash,
    ) -> None:
        """Ledger insert; a repeated (pattern, contributor) pair is silently ignored."""
        stmt = dialect_insert(self.db, PatternContribution).values(
            id=uuid.uuid4(),
            pattern_id=pattern_id,
            contributor_hash=contributor_hash,
            contributed_at=utcnow(),
        ).on_conflict_do_nothing(
            index_elements=["pattern_id", "contributor_hash"],
        )
        await self.db.execute(stmt)

    async def distinct_contributors(self, pattern_id: PatternId) -> int:
        count = await self.db.scalar(
            select(func.count(distinct(PatternContribution.contributor_hash)))
            .where(PatternContribution.pattern_id == pattern_id),
        )
        return count or 0

    # ─── Gated reads ────────────────────────────────────────────

    def _filters(
        self,
        category: str | None,
        platform: str | None,
        tags: list[str] | None,
    ) -> list:
        predicates = [k_anonymity_gate()]
        if category:
            predicates.append(CommunityPattern.category == category)
        if platform:
            predicates.append(CommunityPattern.platform == platform)
        if tags:
            predicates.append(tags_overlap(self.db, CommunityPattern.tags, tags))
        return predicates

    async def list_patterns(
        self,
        category: str | None = None,
        platform: str | None = None,
        tags: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchPage:
        """Visible patterns, best effectiveness first."""
        predicates = self._filters(category, platform, tags)
        total = await self.db.scalar(
            select(func.count()).select_from(CommunityPattern).where(*predicates),
        )
        result = await self.db.execute(
            select(CommunityPattern)
            .where(*predicates)
            .order_by(
                CommunityPattern.effectiveness.desc(),
                CommunityPattern.contributor_count.desc(),
            )
            .limit(limit)
            .offset(offset),
        )
        return SearchPage(rows=list(result.scalars().all()), total=total or 0)

    async def search_patterns(
        self,
        q: str,
        category: str | None = None,
        platform: str | None = None,
        tags: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchPage:
        """Visible patterns ranked by relevance, then effectiveness."""
        return await ranked_search(
            self.db,
            CommunityPattern,
            self._filters(category, platform, tags),
            _SEARCH_FIELDS,
            q,
            order_after_rank=[CommunityPattern.effectiveness.desc()],
            tiebreak_key=lambda row: (row.effectiveness,),
            limit=limit,
            offset=offset,
        )

    async def get_pattern(self, pattern_id: PatternId) -> CommunityPattern | None:
        """A single pattern, only once it has passed the gate."""
        result = await self.db.execute(
            select(CommunityPattern).where(
                k_anonymity_gate(), CommunityPattern.id == pattern_id,
            ),
        )
        return result.scalar_one_or_none()

    async def stats(self) -> dict:
        visible = await self.db.scalar(
            select(func.count()).select_from(CommunityPattern)
            .where(k_anonymity_gate()),
        )
        contributors = await self.db.scalar(
            select(func.count(distinct(PatternContribution.contributor_hash))),
        )
        count = func.count().label("count")
        categories = await self.db.execute(
            select(CommunityPattern.category, count)
            .where(k_anonymity_gate())
            .group_by(CommunityPattern.category)
            .order_by(desc("count"), CommunityPattern.category)
            .limit(TOP_CATEGORIES),
        )
        return {
            "total_patterns": visible or 0,
            "total_contributors": contributors or 0,
            "top_categories": [
                {"category": category, "count": n}
                for category, n in categories.all()
            ],
            "last_updated": int(utcnow().timestamp() * 1000),
        }
