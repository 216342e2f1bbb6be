"""Text Search — query normalization and portable weighted ranking.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - Query tokens: whitespace split, non-word chars stripped, tokens < 2 chars dropped
    - Tokens are AND-joined; an empty effective query yields None (caller short-circuits
      to an empty page with total 0, never "match everything")
    - rank_document() returns 0.0 unless every term occurs in some field (AND semantics)

Design Decisions:
    - Weights mirror PostgreSQL ts_rank defaults (A=1.0, B=0.4, C=0.2, D=0.1) so the
      portable ranker orders results the same way as the tsvector path
    - Portable ranker matches whole lower-cased word tokens; no stemming
"""

import re
from typing import Iterable

_NON_WORD = re.compile(r"[^\w]")
_WORD = re.compile(r"\w+")
MIN_TOKEN_LENGTH = 2

WEIGHTS = {"A": 1.0, "B": 0.4, "C": 0.2, "D": 0.1}


def query_terms(q: str) -> list[str]:
    """Split a free-text query into search terms (order preserved)."""
    terms = []
    for raw in q.strip().split():
        token = _NON_WORD.sub("", raw)
        if len(token) >= MIN_TOKEN_LENGTH:
            terms.append(token)
    return terms


def build_ts_query(q: str) -> str | None:
    """AND-joined tsquery text ("cors & proxy"), or None if nothing survives."""
    terms = query_terms(q)
    if not terms:
        return None
    return " & ".join(terms)


def rank_document(
    fields: Iterable[tuple[str | None, str]], terms: list[str],
) -> float:
    """Weighted relevance of a document given (text, weight-letter) fields."""
    wanted = {t.lower() for t in terms}
    if not wanted:
        return 0.0
    seen: set[str] = set()
    score = 0.0
    for text, weight in fields:
        if not text:
            continue
        for token in _WORD.findall(text.lower()):
            if token in wanted:
                seen.add(token)
                score += WEIGHTS[weight]
    if seen != wanted:
        return 0.0
    return score
