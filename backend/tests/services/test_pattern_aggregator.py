"""Pattern Aggregator — fingerprint merge, contributor ledger, k-anonymity gate.

Invariants tested:
    - Three distinct contributors of the same normalized approach → one visible pattern
    - contributor_count always equals the distinct ledger count
    - Repeated contributor never inflates the count
    - No read path exposes a pattern below the threshold
    - Invalid items are rejected individually; the rest of the batch proceeds
"""

import logging

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from knowledge_hub.models.community_pattern import CommunityPattern
from knowledge_hub.services.pattern_aggregator import PatternAggregator
from tests.services.factories import make_hash, pattern_payload


async def _contribute_from(svc, labels, **kw):
    results = []
    for label in labels:
        results.append(await svc.contribute(make_hash(label), [pattern_payload(**kw)]))
    return results


async def test_pattern_becomes_visible_at_third_contributor(test_db):
    svc = PatternAggregator(test_db)

    a = await svc.contribute(make_hash("a"), [pattern_payload()])
    assert (a.accepted, a.merged) == (1, 0)
    assert (await svc.list_patterns()).total == 0

    b = await svc.contribute(
        make_hash("b"), [pattern_payload("add the access control allow origin HEADER!")],
    )
    assert b.merged == 1
    assert (await svc.list_patterns()).total == 0

    c = await svc.contribute(make_hash("c"), [pattern_payload()])
    assert c.merged == 1
    page = await svc.list_patterns()
    assert page.total == 1
    assert page.rows[0].contributor_count == 3
    assert page.rows[0].effectiveness == pytest.approx(0.9)


async def test_repeated_contributor_does_not_inflate_count(test_db):
    svc = PatternAggregator(test_db)
    await _contribute_from(svc, ["a", "a", "a", "b"])

    page = await svc.list_patterns()
    assert page.total == 0

    # internal view: count still matches the ledger
    await _contribute_from(svc, ["c"])
    pattern = (await svc.list_patterns()).rows[0]
    assert pattern.contributor_count == 3
    assert await svc.distinct_contributors(pattern.id) == 3


async def test_effectiveness_is_weighted_average_within_bounds(test_db):
    svc = PatternAggregator(test_db)
    await svc.contribute(make_hash("a"), [pattern_payload(effectiveness=0.8)])
    await svc.contribute(make_hash("b"), [pattern_payload(effectiveness=0.6)])
    await svc.contribute(make_hash("c"), [pattern_payload(effectiveness=1.0)])

    pattern = (await svc.list_patterns()).rows[0]
    # (0.8*1 + 0.6)/2 = 0.7 ; (0.7*2 + 1.0)/3 = 0.8
    assert pattern.effectiveness == pytest.approx(0.8)
    assert 0.0 <= pattern.effectiveness <= 1.0


async def test_different_categories_do_not_merge(test_db):
    svc = PatternAggregator(test_db)
    result = await svc.contribute(make_hash("a"), [
        pattern_payload(category="CORS"), pattern_payload(category="cors"),
    ])
    assert result.accepted == 2


async def test_invalid_items_are_rejected_individually(test_db):
    svc = PatternAggregator(test_db)
    result = await svc.contribute(make_hash("a"), [
        pattern_payload(),
        pattern_payload(approach="too short"),
        pattern_payload(type="bogus"),
        pattern_payload(effectiveness=1.5),
    ])

    assert result.accepted == 1
    assert result.rejected == 3
    assert len(result.errors) == 3
    assert any("approach" in e for e in result.errors)


async def test_get_pattern_is_gated(test_db):
    svc = PatternAggregator(test_db)
    await _contribute_from(svc, ["a", "b"])
    pattern_id = await test_db.scalar(select(CommunityPattern.id))

    assert await svc.get_pattern(pattern_id) is None

    await _contribute_from(svc, ["c"])
    assert (await svc.get_pattern(pattern_id)).id == pattern_id


async def test_search_applies_gate_before_ranking(test_db):
    svc = PatternAggregator(test_db)
    await _contribute_from(svc, ["a", "b", "c"])
    await _contribute_from(
        svc, ["a", "b"], approach="Use a CORS proxy in development",
    )

    page = await svc.search_patterns("cors")
    assert page.total == 1
    assert page.rows[0].category == "CORS"


async def test_search_with_single_short_token_returns_empty(test_db):
    svc = PatternAggregator(test_db)
    await _contribute_from(svc, ["a", "b", "c"])
    page = await svc.search_patterns("a")
    assert page.total == 0


async def test_list_filters_by_category_platform_and_tags(test_db):
    svc = PatternAggregator(test_db)
    await _contribute_from(svc, ["a", "b", "c"], platform="node", tags=["http", "express"])
    await _contribute_from(
        svc, ["a", "b", "c"], category="auth",
        approach="Rotate refresh tokens on every use", platform="python",
    )

    assert (await svc.list_patterns(category="auth")).total == 1
    assert (await svc.list_patterns(platform="node")).total == 1
    assert (await svc.list_patterns(tags=["express", "nope"])).total == 1
    assert (await svc.list_patterns(tags=["nope"])).total == 0


async def test_stats_count_only_visible_patterns(test_db):
    svc = PatternAggregator(test_db)
    await _contribute_from(svc, ["a", "b", "c"])
    await _contribute_from(
        svc, ["d"], category="auth", approach="Rotate refresh tokens on every use",
    )

    stats = await svc.stats()

    assert stats["total_patterns"] == 1
    assert stats["total_contributors"] == 4
    assert stats["top_categories"] == [{"category": "CORS", "count": 1}]
    assert stats["last_updated"] > 0


async def test_storage_failure_rejects_one_pattern_and_continues(test_db, monkeypatch):
    svc = PatternAggregator(test_db)
    real_absorb = svc._absorb

    async def failing_on_auth(contributor_hash, submission):
        if submission.category == "auth":
            raise SQLAlchemyError("deadlock detected")
        return await real_absorb(contributor_hash, submission)

    monkeypatch.setattr(svc, "_absorb", failing_on_auth)
    result = await svc.contribute(make_hash("a"), [
        pattern_payload(),
        pattern_payload(category="auth", approach="Rotate refresh tokens on every use"),
        pattern_payload(category="cache", approach="Key the cache on the full URL"),
    ])

    assert (result.accepted, result.merged, result.rejected) == (2, 0, 1)
    assert result.errors == ["Storage failure while merging pattern"]
    categories = (await test_db.execute(select(CommunityPattern.category))).scalars().all()
    assert sorted(categories) == ["CORS", "cache"]


async def test_crossing_the_threshold_is_logged_once(test_db, caplog):
    svc = PatternAggregator(test_db)
    caplog.set_level(logging.INFO, logger="knowledge_hub.services.pattern_aggregator")

    await _contribute_from(svc, ["a", "b", "c", "d"])

    reached = [
        r for r in caplog.records
        if r.getMessage() == "Pattern reached the k-anonymity threshold"
    ]
    assert len(reached) == 1
