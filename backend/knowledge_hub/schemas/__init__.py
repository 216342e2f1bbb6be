"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate at system boundary (client pushes, federation contributions)
    - Wire format is camelCase (teamId, relatedFiles, contributorHash); snake_case
      names are accepted too
    - Domain types from core/ used for enum fields

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
