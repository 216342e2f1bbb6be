"""Find-or-Create by Derived Key — lost-race retry.

Invariants tested:
    - A UNIQUE violation on create rolls back and retries once as a merge
    - The winner's row survives; exactly one row exists for the key
    - A second violation on the retry propagates to the caller
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from knowledge_hub.models.knowledge_entry import KnowledgeEntry
from knowledge_hub.services.derived_key import find_or_create_by_key


def _row(owner, soft_key, summary="Fix A", timestamp=1):
    return KnowledgeEntry(
        user_id=owner, type="solution", summary=summary,
        timestamp=timestamp, soft_key=soft_key, tags=[], related_files=[],
    )


async def _count(db) -> int:
    return await db.scalar(select(func.count()).select_from(KnowledgeEntry))


async def test_lost_insert_race_retries_as_merge(test_db):
    owner, key = uuid4(), "k" * 64
    lookup = select(KnowledgeEntry).where(
        KnowledgeEntry.user_id == owner, KnowledgeEntry.soft_key == key,
    )
    creates, merged = [], []

    async def create():
        creates.append(1)
        # Another writer commits the same key between our lookup and our insert
        test_db.add(_row(owner, key, timestamp=5))
        await test_db.commit()
        test_db.add(_row(owner, key, timestamp=9))
        await test_db.flush()

    async def merge(existing):
        merged.append(existing.timestamp)
        existing.timestamp = 9

    created = await find_or_create_by_key(test_db, lookup, create, merge)

    assert created is False
    assert creates == [1]
    assert merged == [5]
    assert await _count(test_db) == 1
    row = (await test_db.execute(lookup)).scalar_one()
    assert row.timestamp == 9


async def test_repeated_violation_propagates(test_db):
    owner = uuid4()
    test_db.add(_row(owner, "a" * 64))
    await test_db.commit()
    # Lookup never matches, so every create collides with the committed row
    lookup = select(KnowledgeEntry).where(KnowledgeEntry.soft_key == "missing")

    async def create():
        test_db.add(_row(owner, "a" * 64))
        await test_db.flush()

    async def merge(existing):
        raise AssertionError("merge must not run")

    with pytest.raises(IntegrityError):
        await find_or_create_by_key(test_db, lookup, create, merge)
    assert await _count(test_db) == 1
