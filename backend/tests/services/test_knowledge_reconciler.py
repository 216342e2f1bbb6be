"""Knowledge Reconciler — soft-key dedup, monotonic timestamps, owner scoping.

Invariants tested:
    - Identical push twice → inserted then skipped, stored timestamp = max
    - A batch is idempotent on resubmission
    - Two owners never merge into each other
    - Timestamp never regresses
    - update/delete on a foreign id is a no-op
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from knowledge_hub.core.errors import DuplicateRecordError
from knowledge_hub.models.knowledge_entry import KnowledgeEntry
from knowledge_hub.schemas.knowledge import KnowledgeEntryIn
from knowledge_hub.services.knowledge_reconciler import KnowledgeReconciler


def _entry(summary="Fix A", timestamp=1000, **kw) -> KnowledgeEntryIn:
    return KnowledgeEntryIn(
        type=kw.pop("type", "solution"), summary=summary, timestamp=timestamp, **kw,
    )


async def _count(db) -> int:
    return await db.scalar(select(func.count()).select_from(KnowledgeEntry))


async def test_second_identical_push_is_skipped_and_timestamp_advances(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)

    first = await svc.merge(owner, None, [_entry(timestamp=1000)])
    second = await svc.merge(owner, None, [_entry(timestamp=1001)])

    assert (first.inserted, first.skipped) == (1, 0)
    assert (second.inserted, second.skipped) == (0, 1)
    rows, total = await svc.list_entries(owner)
    assert total == 1
    assert rows[0].timestamp == 1001


async def test_older_timestamp_never_regresses(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    await svc.merge(owner, None, [_entry(timestamp=5000)])
    await svc.merge(owner, None, [_entry(timestamp=10)])

    rows, _ = await svc.list_entries(owner)
    assert rows[0].timestamp == 5000


async def test_resubmitting_batch_is_idempotent(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    batch = [_entry("one"), _entry("two"), _entry("three", project="web")]

    await svc.merge(owner, None, batch)
    again = await svc.merge(owner, None, batch)

    assert again.inserted == 0
    assert again.skipped == 3
    assert await _count(test_db) == 3


async def test_duplicates_within_one_batch_collapse(test_db):
    owner = uuid4()
    result = await KnowledgeReconciler(test_db).merge(
        owner, None, [_entry(timestamp=1), _entry(timestamp=2)],
    )
    assert (result.inserted, result.skipped) == (1, 1)
    assert await _count(test_db) == 1


async def test_project_is_part_of_the_soft_key(test_db):
    owner = uuid4()
    result = await KnowledgeReconciler(test_db).merge(
        owner, None, [_entry(project="web"), _entry(project="api"), _entry()],
    )
    assert result.inserted == 3


async def test_owners_never_merge_into_each_other(test_db):
    svc = KnowledgeReconciler(test_db)
    await svc.merge(uuid4(), None, [_entry()])
    result = await svc.merge(uuid4(), None, [_entry()])
    assert result.inserted == 1
    assert await _count(test_db) == 2


async def test_create_returns_existing_id_on_duplicate(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    first_id, created = await svc.create(owner, None, _entry())
    second_id, created_again = await svc.create(owner, None, _entry(timestamp=2000))

    assert created is True
    assert created_again is False
    assert first_id == second_id


async def test_pull_filters_by_updated_at(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    await svc.merge(owner, None, [_entry("old")])
    entries = await svc.pull(owner)
    cursor = entries[0].updated_at

    await svc.merge(owner, None, [_entry("new")])
    newer = await svc.pull(owner, since=cursor)

    assert [e.summary for e in newer] == ["new"]


async def test_pull_is_owner_scoped(test_db):
    svc = KnowledgeReconciler(test_db)
    await svc.merge(uuid4(), None, [_entry("theirs")])
    assert await svc.pull(uuid4()) == []


async def test_team_records_visible_to_team_scope(test_db):
    team = uuid4()
    svc = KnowledgeReconciler(test_db)
    await svc.merge(uuid4(), team, [_entry("shared")])

    member = uuid4()
    assert await svc.pull(member) == []
    shared = await svc.pull(member, team_id=team)
    assert [e.summary for e in shared] == ["shared"]


async def test_update_changes_fields_and_soft_key(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    entry_id, _ = await svc.create(owner, None, _entry("before"))

    assert await svc.update(entry_id, owner, {"summary": "after", "tags": ["x"]})

    row = await svc.get(entry_id, owner)
    assert row.summary == "after"
    assert row.tags == ["x"]
    # the new soft key now dedups pushes of the new summary
    result = await svc.merge(owner, None, [_entry("after")])
    assert result.skipped == 1


async def test_update_into_existing_soft_key_is_a_conflict(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    await svc.create(owner, None, _entry("taken"))
    entry_id, _ = await svc.create(owner, None, _entry("free"))

    with pytest.raises(DuplicateRecordError):
        await svc.update(entry_id, owner, {"summary": "taken"})


async def test_update_and_delete_foreign_entry_are_noops(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    entry_id, _ = await svc.create(owner, None, _entry())

    stranger = uuid4()
    assert await svc.get(entry_id, stranger) is None
    assert await svc.update(entry_id, stranger, {"summary": "hijack"}) is False
    assert await svc.delete(entry_id, stranger) is False
    assert await svc.delete(entry_id, owner) is True
    assert await svc.get(entry_id, owner) is None


async def test_search_matches_summary_and_details(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    await svc.merge(owner, None, [
        _entry("Configure CORS proxy", timestamp=1),
        _entry("Unrelated", details="the cors header was missing", timestamp=2),
        _entry("Database pool sizing", timestamp=3),
    ])

    page = await svc.search(owner, None, "cors")

    assert page.total == 2
    assert page.rows[0].summary == "Configure CORS proxy"


async def test_search_with_only_short_tokens_is_empty(test_db):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    await svc.merge(owner, None, [_entry("a b c")])
    page = await svc.search(owner, None, "a")
    assert page.total == 0
    assert page.rows == []


async def test_search_never_crosses_owners(test_db):
    svc = KnowledgeReconciler(test_db)
    await svc.merge(uuid4(), None, [_entry("secret cors fix")])
    page = await svc.search(uuid4(), None, "cors")
    assert page.total == 0


async def test_storage_failure_is_isolated_to_one_record(test_db, monkeypatch):
    owner = uuid4()
    svc = KnowledgeReconciler(test_db)
    real_upsert = svc._upsert

    async def failing_on_two(owner_id, team_id, entry):
        if entry.summary == "two":
            raise SQLAlchemyError("disk I/O error")
        return await real_upsert(owner_id, team_id, entry)

    monkeypatch.setattr(svc, "_upsert", failing_on_two)
    result = await svc.merge(owner, None, [_entry("one"), _entry("two"), _entry("three")])

    assert (result.inserted, result.skipped, result.failed) == (2, 0, 1)
    assert result.errors == ["Storage failure while merging entry"]
    rows, total = await svc.list_entries(owner)
    assert total == 2
    assert {r.summary for r in rows} == {"one", "three"}
