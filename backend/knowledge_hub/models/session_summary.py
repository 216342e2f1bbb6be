"""SessionSummary ORM — current state of one client session, last write wins.

Invariants:
    - At most one row per (user_id, session_id)
    - summary is an opaque JSON document: stored and returned, never interpreted
    - updated_at is NULL until a later push replaces the row

Design Decisions:
    - Upsert via INSERT ... ON CONFLICT on the unique pair (atomic, no read-then-write)
    - created_at is not touched on replacement: pull-by-created_at mirrors the sync
      protocol clients already speak
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from knowledge_hub.db.base import Base, JSONDocument, utcnow


class SessionSummary(Base):
    """Session summary keyed by (owner, client session id)."""
    __tablename__ = "session_summaries"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_session_owner_session"),
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
    session_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True,
    )
    project: Mapped[str | None] = mapped_column(String(255), nullable=True)
    summary: Mapped[dict] = mapped_column(
        JSONDocument, nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "team_id": str(self.team_id) if self.team_id else None,
            "session_id": self.session_id,
            "project": self.project,
            "summary": self.summary,
            "created_at": self.created_at.isoformat(),
            "updated_at": (
                self.updated_at.isoformat() if self.updated_at else None
            ),
        }
