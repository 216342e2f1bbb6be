"""Domain Types — rich types and result shapes shared by core and shell.

Invariants:
    - OwnerId, TeamId, PatternId wrap UUIDs; never use bare UUID in domain logic
    - ContributorHash is opaque: never derived or verified here
    - Effectiveness is bounded 0.0–1.0
    - All valid pattern types encoded as an Enum, no raw string matching
    - Batch result counters only ever grow; errors list is bounded

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
    - Result dataclasses expose to_dict(): routes return them verbatim
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

OwnerId = NewType("OwnerId", UUID)
TeamId = NewType("TeamId", UUID)
KnowledgeId = NewType("KnowledgeId", UUID)
PatternId = NewType("PatternId", UUID)
ContributorHash = NewType("ContributorHash", str)


# ─── Value Types ─────────────────────────────────────────────────

Effectiveness = NewType("Effectiveness", float)   # 0.0–1.0
DerivedKey = NewType("DerivedKey", str)           # 64 hex chars


# ─── Enums ───────────────────────────────────────────────────────

class PatternType(str, Enum):
    """Closed set of community pattern kinds — maps to DB `type` column."""
    SOLUTION = "solution"
    ERROR_FIX = "error_fix"
    DECISION = "decision"
    PATTERN = "pattern"


class TeamRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


# ─── Batch Results ───────────────────────────────────────────────

MAX_ERROR_MESSAGES = 10
MAX_ERROR_MESSAGE_LENGTH = 100


@dataclass
class _BatchResult:
    errors: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        """Keep at most MAX_ERROR_MESSAGES messages, each truncated."""
        if len(self.errors) < MAX_ERROR_MESSAGES:
            self.errors.append(
                (message or "Unknown error")[:MAX_ERROR_MESSAGE_LENGTH],
            )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class KnowledgeMergeResult(_BatchResult):
    """Outcome of a knowledge push: new rows vs merged-into-existing."""
    inserted: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class SessionMergeResult(_BatchResult):
    """Outcome of a session-summary push."""
    inserted: int = 0
    updated: int = 0
    failed: int = 0


@dataclass
class ContributionResult(_BatchResult):
    """Outcome of an anonymous pattern contribution."""
    accepted: int = 0
    merged: int = 0
    rejected: int = 0
