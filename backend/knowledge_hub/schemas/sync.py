"""Sync Schemas — batch push bodies for knowledge entries and session summaries.

Invariants:
    - Knowledge pushes carry 1-500 entries; session pushes carry 1-200 summaries
    - Session summary payload is an opaque JSON object, never inspected
"""

from typing import Any
from uuid import UUID

from pydantic import Field, field_validator

from knowledge_hub.schemas.base import WireModel
from knowledge_hub.schemas.knowledge import KnowledgeEntryIn


class SessionSummaryIn(WireModel):
    session_id: str = Field(min_length=1, max_length=255)
    project: str | None = Field(None, max_length=255)
    summary: dict[str, Any]

    @field_validator("project")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        return v or None


class SessionSummaryCreate(SessionSummaryIn):
    team_id: UUID | None = None


class PushKnowledgeRequest(WireModel):
    entries: list[KnowledgeEntryIn] = Field(min_length=1, max_length=500)
    team_id: UUID | None = None


class PushSessionsRequest(WireModel):
    summaries: list[SessionSummaryIn] = Field(min_length=1, max_length=200)
    team_id: UUID | None = None
