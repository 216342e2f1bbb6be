"""Team Schemas."""

from uuid import UUID

from pydantic import Field, field_validator

from knowledge_hub.schemas.base import WireModel


class TeamCreate(WireModel):
    name: str = Field(min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty or whitespace")
        return v


class TeamMemberAdd(WireModel):
    user_id: UUID
