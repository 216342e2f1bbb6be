"""KnowledgeEntry ORM — a synced knowledge record owned by one user.

Invariants:
    - user_id is the owner; team_id (optional) grants read visibility to a team
    - soft_key = sha256(type, project-or-null, summary), UNIQUE per owner
    - timestamp is the client's logical clock: only ever advanced, never regressed
    - created_at/updated_at are server time (UTC)

Design Decisions:
    - soft_key materialized as a column: lets the store enforce dedup under concurrency
      instead of relying on a read-then-insert race
    - JSON lists for tags/related_files: portable across PostgreSQL and SQLite
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    String, Text, BigInteger, DateTime, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from knowledge_hub.db.base import Base, JSONDocument, utcnow


class KnowledgeEntry(Base):
    """Knowledge record — one logical fact pushed by a client."""
    __tablename__ = "knowledge_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "soft_key", name="uq_knowledge_owner_soft_key"),
        Index("idx_knowledge_team", "team_id"),
        Index("idx_knowledge_type", "type"),
        Index("idx_knowledge_project", "project"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    team_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    project: Mapped[str | None] = mapped_column(String(255), nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(JSONDocument, nullable=False, default=list)
    related_files: Mapped[list] = mapped_column(
        JSONDocument, nullable=False, default=list,
    )
    soft_key: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "team_id": str(self.team_id) if self.team_id else None,
            "type": self.type,
            "project": self.project,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "summary": self.summary,
            "details": self.details,
            "tags": list(self.tags or []),
            "related_files": list(self.related_files or []),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
