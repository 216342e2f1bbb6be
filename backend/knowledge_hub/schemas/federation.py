"""Federation Schemas — anonymous pattern contributions.

Invariants:
    - contributor_hash is exactly 64 chars and opaque
    - A request carries 1-100 patterns; each pattern is validated individually by the
      aggregator so one bad item never sinks the batch
    - PatternSubmission.type is the closed PatternType set
    - Client-side bookkeeping (id, contributorCount, firstSeen, lastSeen) is accepted
      but never trusted: the server owns those values

Design Decisions:
    - ContributeRequest.patterns typed as raw dicts: per-item validation failures are
      counted as rejected instead of failing the whole request with 400
"""

from typing import Annotated, Any

from pydantic import Field

from knowledge_hub.core.domain_types import PatternType
from knowledge_hub.core.federation_policy import DEFAULT_EFFECTIVENESS
from knowledge_hub.schemas.base import WireModel


class PatternSubmission(WireModel):
    """A single anonymized pattern as contributed by a client."""
    id: str | None = None
    type: PatternType
    category: str = Field(min_length=1, max_length=255)
    platform: str | None = Field(None, max_length=255)
    approach: str = Field(min_length=10, max_length=5000)
    tags: list[Annotated[str, Field(max_length=50)]] = Field(
        default_factory=list, max_length=20,
    )
    effectiveness: float = Field(DEFAULT_EFFECTIVENESS, ge=0, le=1)
    contributor_count: int | None = Field(None, ge=1)
    first_seen: int | None = None
    last_seen: int | None = None


class ContributeRequest(WireModel):
    contributor_hash: str = Field(min_length=64, max_length=64)
    patterns: list[dict[str, Any]] = Field(min_length=1, max_length=100)
