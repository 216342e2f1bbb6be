"""Search Backend — PostgreSQL vector expression matches the migrated GIN indexes.

Invariants tested:
    - The ranking expression compiles to the exact text the expression indexes use,
      so the planner can match it (no bind parameters inside the vector)
"""

from sqlalchemy.dialects import postgresql

from knowledge_hub.services.knowledge_reconciler import _SEARCH_FIELDS as KNOWLEDGE_FIELDS
from knowledge_hub.services.pattern_aggregator import _SEARCH_FIELDS as PATTERN_FIELDS
from knowledge_hub.services.search_backend import weighted_tsvector


def _pg_sql(fields) -> str:
    return str(weighted_tsvector(fields).compile(dialect=postgresql.dialect()))


def test_pattern_vector_matches_index_expression():
    sql = _pg_sql(PATTERN_FIELDS)
    assert (
        "to_tsvector('english'::regconfig, "
        "coalesce(community_patterns.category, ''))"
    ) in sql
    assert "coalesce(community_patterns.approach, '')" in sql
    assert "coalesce(community_patterns.platform, '')" in sql
    assert "%(" not in sql


def test_knowledge_vector_matches_index_expression():
    sql = _pg_sql(KNOWLEDGE_FIELDS)
    assert "coalesce(knowledge_entries.summary, '')), 'A')" in sql
    assert "coalesce(knowledge_entries.details, '')), 'B')" in sql
    assert "%(" not in sql
