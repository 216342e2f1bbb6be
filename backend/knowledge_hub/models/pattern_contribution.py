"""PatternContribution ORM — one ledger entry per (pattern, anonymous contributor).

Invariants:
    - UNIQUE (pattern_id, contributor_hash): a contributor counts at most once per pattern
    - Rows are append-only from the application's point of view
    - contributor_hash is opaque: never joined to any user table

Design Decisions:
    - ON DELETE CASCADE: ledger lives and dies with its pattern
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from knowledge_hub.db.base import Base, utcnow


class PatternContribution(Base):
    """Contribution ledger entry."""
    __tablename__ = "pattern_contributions"
    __table_args__ = (
        UniqueConstraint(
            "pattern_id", "contributor_hash", name="uq_contribution_pattern_contributor",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    pattern_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("community_patterns.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    contributor_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True,
    )
    contributed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
