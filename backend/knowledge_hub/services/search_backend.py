"""Search Backend — dialect-aware full-text ranking and JSON list predicates.

Invariants:
    - Callers pass their visibility predicates (owner scope, k-anonymity gate) FIRST;
      ranking only ever sees rows that already passed them
    - total counts rows matching predicates AND the query, never more
    - PostgreSQL: setweight(to_tsvector('english', ...)) @@ to_tsquery('english', ...),
      ordered by ts_rank
    - Other dialects: candidates filtered in SQL by the same predicates, then matched
      and ranked with core.text_search.rank_document (same weights, AND semantics)

Design Decisions:
    - Vector built inline from columns: the migration keeps a GIN expression index over
      the identical expression, so no mapped tsvector column is needed
    - Portable path exists for the SQLite test database; it loads the predicate-scoped
      candidate set, which is bounded by owner or by the gate
"""

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from sqlalchemy import ARRAY, Text, cast, func, literal_column, select
from sqlalchemy.dialects.postgresql import JSONB, array
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement
from sqlalchemy.sql.expression import type_coerce

from knowledge_hub.core.text_search import build_ts_query, query_terms, rank_document
from knowledge_hub.infrastructure.database import dialect_name

_TS_CONFIG = literal_column("'english'::regconfig")
_EMPTY_TEXT = literal_column("''")


@dataclass(frozen=True)
class WeightedField:
    """A text column contributing to relevance with a tsvector weight letter."""
    column: Any
    weight: str


@dataclass(frozen=True)
class SearchPage:
    rows: list
    total: int


def weighted_tsvector(fields: Sequence[WeightedField]) -> ColumnElement:
    """setweight(to_tsvector(...), 'A') || setweight(...) — PostgreSQL only."""
    vector = None
    for f in fields:
        part = func.setweight(
            func.to_tsvector(_TS_CONFIG, func.coalesce(f.column, _EMPTY_TEXT)),
            literal_column(f"'{f.weight}'"),
        )
        vector = part if vector is None else vector.op("||")(part)
    return vector


def tags_overlap(db: AsyncSession, column, tags: list[str]) -> ColumnElement:
    """True when the JSON list in `column` shares at least one element with `tags`."""
    if dialect_name(db) == "postgresql":
        return type_coerce(column, JSONB).has_any(
            cast(array(tags), ARRAY(Text)),
        )
    each = func.json_each(column).table_valued("value")
    return select(each.c.value).where(each.c.value.in_(tags)).exists()


async def ranked_search(
    db: AsyncSession,
    model,
    predicates: Sequence[ColumnElement],
    fields: Sequence[WeightedField],
    q: str,
    order_after_rank: Sequence[ColumnElement],
    tiebreak_key: Callable[[Any], tuple],
    limit: int,
    offset: int,
) -> SearchPage:
    """Rank `model` rows passing `predicates` against free-text `q`."""
    ts_query = build_ts_query(q)
    if ts_query is None:
        return SearchPage(rows=[], total=0)

    if dialect_name(db) == "postgresql":
        vector = weighted_tsvector(fields)
        tsq = func.to_tsquery(_TS_CONFIG, ts_query)
        match = vector.op("@@")(tsq)
        total = await db.scalar(
            select(func.count()).select_from(model).where(*predicates, match),
        )
        result = await db.execute(
            select(model)
            .where(*predicates, match)
            .order_by(func.ts_rank(vector, tsq).desc(), *order_after_rank)
            .limit(limit)
            .offset(offset),
        )
        return SearchPage(rows=list(result.scalars().all()), total=total or 0)

    terms = query_terms(q)
    candidates = (await db.execute(select(model).where(*predicates))).scalars().all()
    scored = []
    for row in candidates:
        rank = rank_document(
            [(getattr(row, f.column.key), f.weight) for f in fields], terms,
        )
        if rank > 0:
            scored.append((rank, row))
    scored.sort(key=lambda pair: (pair[0], *tiebreak_key(pair[1])), reverse=True)
    page = [row for _, row in scored[offset:offset + limit]]
    return SearchPage(rows=page, total=len(scored))
