"""CommunityPattern ORM — an anonymized pattern shared by the community.

Invariants:
    - Not owned by anyone: no user_id column, ever
    - hash is the content fingerprint (category + normalized approach), UNIQUE
    - contributor_count == COUNT(DISTINCT contributor_hash) in pattern_contributions
    - effectiveness within [0, 1]
    - Never deleted by application code

Design Decisions:
    - Rows are the only shared state: no in-process cache of patterns
    - Full-text vector is not mapped: PostgreSQL keeps a GIN expression index
      (migration 002) and queries build the same expression
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Text, Float, Integer, DateTime, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from knowledge_hub.db.base import Base, JSONDocument, epoch_ms, utcnow


class CommunityPattern(Base):
    """Community pattern — merge target for anonymous contributions."""
    __tablename__ = "community_patterns"
    __table_args__ = (
        CheckConstraint(
            "type IN ('solution', 'error_fix', 'decision', 'pattern')",
            name="ck_patterns_type",
        ),
        CheckConstraint(
            "effectiveness >= 0 AND effectiveness <= 1",
            name="ck_patterns_effectiveness",
        ),
        CheckConstraint("contributor_count >= 0", name="ck_patterns_contributors"),
        Index("idx_patterns_category", "category"),
        Index("idx_patterns_platform", "platform"),
        Index("idx_patterns_effectiveness", "effectiveness"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approach: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    effectiveness: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.5,
    )
    contributor_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )
    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    def to_dict(self) -> dict:
        """Public shape — fingerprint and ledger stay server-side."""
        return {
            "id": str(self.id),
            "type": self.type,
            "category": self.category,
            "platform": self.platform,
            "approach": self.approach,
            "tags": list(self.tags or []),
            "effectiveness": round(float(self.effectiveness), 4),
            "contributor_count": self.contributor_count,
            "first_seen": epoch_ms(self.first_seen),
            "last_seen": epoch_ms(self.last_seen),
        }
