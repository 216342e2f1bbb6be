"""Federation schema — community_patterns + pattern_contributions ledger.

Revision ID: 002_federation
Revises: 001_initial
Create Date: 2026-10-19

Design Decisions:
    - GIN expression index uses the exact tsvector expression built by
      services/search_backend.py, so the planner can use it for @@ queries
    - Contributions cascade with their pattern
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "002_federation"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "community_patterns",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("category", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(255), nullable=True),
        sa.Column("approach", sa.Text, nullable=False),
        sa.Column("tags", JSONB, nullable=False, server_default="[]"),
        sa.Column("effectiveness", sa.Float, nullable=False, server_default="0.5"),
        sa.Column("contributor_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("first_seen", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("hash", sa.String(64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('solution', 'error_fix', 'decision', 'pattern')",
            name="ck_patterns_type",
        ),
        sa.CheckConstraint(
            "effectiveness >= 0 AND effectiveness <= 1",
            name="ck_patterns_effectiveness",
        ),
        sa.CheckConstraint("contributor_count >= 0", name="ck_patterns_contributors"),
    )
    op.create_index("idx_patterns_category", "community_patterns", ["category"])
    op.create_index("idx_patterns_platform", "community_patterns", ["platform"])
    op.create_index("idx_patterns_effectiveness", "community_patterns", ["effectiveness"])
    op.create_index(
        "idx_patterns_tags", "community_patterns", ["tags"], postgresql_using="gin",
    )
    op.execute(
        "CREATE INDEX idx_patterns_search ON community_patterns USING GIN ("
        "setweight(to_tsvector('english'::regconfig, coalesce(category, '')), 'A') || "
        "setweight(to_tsvector('english'::regconfig, coalesce(approach, '')), 'B') || "
        "setweight(to_tsvector('english'::regconfig, coalesce(platform, '')), 'C'))"
    )

    op.create_table(
        "pattern_contributions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "pattern_id", UUID(as_uuid=True),
            sa.ForeignKey("community_patterns.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("contributor_hash", sa.String(64), nullable=False),
        sa.Column("contributed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "pattern_id", "contributor_hash", name="uq_contribution_pattern_contributor",
        ),
    )
    op.create_index(
        "ix_pattern_contributions_pattern_id", "pattern_contributions", ["pattern_id"],
    )
    op.create_index(
        "ix_pattern_contributions_contributor_hash",
        "pattern_contributions", ["contributor_hash"],
    )


def downgrade() -> None:
    op.drop_table("pattern_contributions")
    op.execute("DROP INDEX IF EXISTS idx_patterns_search")
    op.drop_table("community_patterns")
