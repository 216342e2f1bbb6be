"""Knowledge Schemas — knowledge entries as pushed, created, and patched by clients.

Invariants:
    - type: 1-20 chars; summary: 1-5000 chars; details <= 50000 chars
    - tags: <= 20 items of <= 50 chars; related_files: <= 50 items of <= 500 chars
    - timestamp is the client's logical clock (integer within +-(2^53 - 1), trusted only
      for max())
    - KnowledgeUpdate carries only the four mutable fields
"""

from typing import Annotated
from uuid import UUID

from pydantic import Field, field_validator

from knowledge_hub.schemas.base import WireModel

# Clients are JavaScript: logical clocks stay within Number.MAX_SAFE_INTEGER
MAX_SAFE_INTEGER = 2**53 - 1

Tag = Annotated[str, Field(max_length=50)]
RelatedFile = Annotated[str, Field(max_length=500)]


class KnowledgeEntryIn(WireModel):
    """One knowledge record as produced by a client."""
    type: str = Field(min_length=1, max_length=20)
    project: str | None = Field(None, max_length=255)
    session_id: str | None = Field(None, max_length=255)
    timestamp: int = Field(ge=-MAX_SAFE_INTEGER, le=MAX_SAFE_INTEGER)
    summary: str = Field(min_length=1, max_length=5000)
    details: str | None = Field(None, max_length=50_000)
    tags: list[Tag] = Field(default_factory=list, max_length=20)
    related_files: list[RelatedFile] = Field(default_factory=list, max_length=50)

    @field_validator("project", "session_id")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class KnowledgeCreate(KnowledgeEntryIn):
    team_id: UUID | None = None


class KnowledgeUpdate(WireModel):
    """Partial update — absent fields are left untouched."""
    summary: str | None = Field(None, min_length=1, max_length=5000)
    details: str | None = Field(None, max_length=50_000)
    tags: list[Tag] | None = Field(None, max_length=20)
    related_files: list[RelatedFile] | None = Field(None, max_length=50)

    @field_validator("summary", "tags", "related_files")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v
