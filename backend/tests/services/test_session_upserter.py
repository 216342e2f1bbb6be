"""Session Upserter — last write wins per (owner, session id).

Invariants tested:
    - First push inserts, second push of the same session id replaces
    - Replacement sets updated_at and keeps a single row
    - Same session id under two owners yields two rows
"""

from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from knowledge_hub.models.session_summary import SessionSummary
from knowledge_hub.schemas.sync import SessionSummaryIn
from knowledge_hub.services.session_upserter import SessionUpserter


def _summary(session_id="s-1", **payload) -> SessionSummaryIn:
    return SessionSummaryIn(
        session_id=session_id, project="web", summary=payload or {"turns": 1},
    )


async def test_second_push_replaces_payload(test_db):
    owner = uuid4()
    svc = SessionUpserter(test_db)

    first = await svc.merge(owner, None, [_summary(turns=1)])
    second = await svc.merge(owner, None, [_summary(turns=7, note="final")])

    assert (first.inserted, first.updated) == (1, 0)
    assert (second.inserted, second.updated) == (0, 1)
    row = await svc.get(owner, "s-1")
    assert row.summary == {"turns": 7, "note": "final"}
    assert row.updated_at is not None


async def test_replacement_keeps_single_row(test_db):
    owner = uuid4()
    svc = SessionUpserter(test_db)
    for n in range(3):
        await svc.upsert(owner, None, _summary(turns=n))

    count = await test_db.scalar(select(func.count()).select_from(SessionSummary))
    assert count == 1


async def test_upsert_reports_inserted_then_updated(test_db):
    owner = uuid4()
    svc = SessionUpserter(test_db)
    assert await svc.upsert(owner, None, _summary()) is True
    assert await svc.upsert(owner, None, _summary()) is False


async def test_same_session_id_under_two_owners(test_db):
    svc = SessionUpserter(test_db)
    a, b = uuid4(), uuid4()
    await svc.merge(a, None, [_summary()])
    await svc.merge(b, None, [_summary()])

    assert (await svc.get(a, "s-1")).user_id == a
    assert (await svc.get(b, "s-1")).user_id == b


async def test_get_foreign_session_is_none(test_db):
    svc = SessionUpserter(test_db)
    await svc.merge(uuid4(), None, [_summary()])
    assert await svc.get(uuid4(), "s-1") is None


async def test_pull_and_list_are_owner_scoped(test_db):
    owner = uuid4()
    svc = SessionUpserter(test_db)
    await svc.merge(owner, None, [_summary("a"), _summary("b")])
    await svc.merge(uuid4(), None, [_summary("c")])

    pulled = await svc.pull(owner)
    rows, total = await svc.list_summaries(owner)

    assert {s.session_id for s in pulled} == {"a", "b"}
    assert total == 2
    assert {s.session_id for s in rows} == {"a", "b"}


async def test_storage_failure_is_isolated_to_one_summary(test_db, monkeypatch):
    owner = uuid4()
    svc = SessionUpserter(test_db)
    real_upsert = svc.upsert

    async def failing_on_b(owner_id, team_id, item):
        if item.session_id == "b":
            raise SQLAlchemyError("connection reset")
        return await real_upsert(owner_id, team_id, item)

    monkeypatch.setattr(svc, "upsert", failing_on_b)
    result = await svc.merge(owner, None, [_summary("a"), _summary("b"), _summary("c")])

    assert (result.inserted, result.updated, result.failed) == (2, 0, 1)
    assert len(result.errors) == 1
    rows, total = await svc.list_summaries(owner)
    assert total == 2
    assert {s.session_id for s in rows} == {"a", "c"}
