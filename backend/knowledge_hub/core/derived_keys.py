"""Derived Keys — deterministic dedup keys computed from a subset of record fields.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - Same logical input → same 64-char hex key, across processes and restarts
    - Soft key: (type, project-or-null, summary): exact text; owner scoping is the caller's job
    - Fingerprint: (category, normalized approach): formatting noise collapses

Design Decisions:
    - SHA-256 hex digests: fixed width, indexable, UNIQUE-constraint friendly
    - Soft key separates fields with NUL so ("a", "b c") never collides with ("a b", "c");
      a missing project is encoded distinctly from an empty string
    - Fingerprint keeps category verbatim: "CORS" and "cors" are different categories
"""

import hashlib
import re

from knowledge_hub.core.domain_types import DerivedKey

_NON_WORD_OR_SPACE = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_NO_PROJECT = "\x00<none>"


def normalize_approach(approach: str) -> str:
    """Lower-case, replace punctuation with spaces, collapse whitespace."""
    text = _NON_WORD_OR_SPACE.sub(" ", approach.lower())
    return _WHITESPACE.sub(" ", text).strip()


def pattern_fingerprint(category: str, approach: str) -> DerivedKey:
    """Content fingerprint used as the community pattern merge key."""
    normalized = f"{category}:{normalize_approach(approach)}"
    return DerivedKey(hashlib.sha256(normalized.encode("utf-8")).hexdigest())


def knowledge_soft_key(
    entry_type: str, project: str | None, summary: str,
) -> DerivedKey:
    """Soft identity key of a knowledge record within one owner."""
    parts = (entry_type, project if project is not None else _NO_PROJECT, summary)
    raw = "\x00".join(parts)
    return DerivedKey(hashlib.sha256(raw.encode("utf-8")).hexdigest())
