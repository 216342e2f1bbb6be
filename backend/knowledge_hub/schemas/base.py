"""Shared schema configuration — camelCase aliases on the wire."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for request bodies: accepts camelCase (clients) or snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
