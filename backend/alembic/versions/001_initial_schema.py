"""Initial schema — teams, team_members, knowledge_entries, session_summaries.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner_id", UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "team_members",
        sa.Column(
            "team_id", UUID(as_uuid=True),
            sa.ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_team_members_user_id", "team_members", ["user_id"])

    op.create_table(
        "knowledge_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("project", sa.String(255), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("timestamp", sa.BigInteger, nullable=True),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("tags", JSONB, nullable=False, server_default="[]"),
        sa.Column("related_files", JSONB, nullable=False, server_default="[]"),
        sa.Column("soft_key", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "soft_key", name="uq_knowledge_owner_soft_key"),
    )
    op.create_index("ix_knowledge_entries_user_id", "knowledge_entries", ["user_id"])
    op.create_index("idx_knowledge_team", "knowledge_entries", ["team_id"])
    op.create_index("idx_knowledge_type", "knowledge_entries", ["type"])
    op.create_index("idx_knowledge_project", "knowledge_entries", ["project"])
    op.execute(
        "CREATE INDEX idx_knowledge_search ON knowledge_entries USING GIN ("
        "setweight(to_tsvector('english'::regconfig, coalesce(summary, '')), 'A') || "
        "setweight(to_tsvector('english'::regconfig, coalesce(details, '')), 'B'))"
    )

    op.create_table(
        "session_summaries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("project", sa.String(255), nullable=True),
        sa.Column("summary", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "session_id", name="uq_session_owner_session"),
    )
    op.create_index("ix_session_summaries_user_id", "session_summaries", ["user_id"])
    op.create_index("ix_session_summaries_session_id", "session_summaries", ["session_id"])


def downgrade() -> None:
    op.drop_table("session_summaries")
    op.execute("DROP INDEX IF EXISTS idx_knowledge_search")
    op.drop_table("knowledge_entries")
    op.drop_table("team_members")
    op.drop_table("teams")
