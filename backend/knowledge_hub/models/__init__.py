"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Private records (knowledge, sessions) are scoped by user_id / team_id
    - Community patterns and their ledger are owned by nobody

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete for create_all and Alembic
"""

from knowledge_hub.models.knowledge_entry import KnowledgeEntry  # noqa: F401
from knowledge_hub.models.session_summary import SessionSummary  # noqa: F401
from knowledge_hub.models.community_pattern import CommunityPattern  # noqa: F401
from knowledge_hub.models.pattern_contribution import PatternContribution  # noqa: F401
from knowledge_hub.models.team import Team, TeamMember  # noqa: F401
