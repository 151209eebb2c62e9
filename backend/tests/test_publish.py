"""
Publishing staged results: field selection, partial failure, rate limits.
"""

from __future__ import annotations

import asyncio

import pytest

from bulky.core.errors import RateLimitExceeded
from bulky.publishing import PublishCoordinator, RateLimiter, merge_fields
from bulky.schemas import FieldOverrides, ProductSnapshot, PublishDirective, StagedResult
from bulky.storage import MemoryKeyValueStore, OptimizationHistory, StagingStore

from conftest import TENANT, ScriptedEnricher, make_catalog, make_orchestrator, proposal_for


def _stage(staging: StagingStore, catalog, *item_ids: str) -> None:
    for item_id in item_ids:
        staging.put(item_id, catalog.items[item_id].snapshot, proposal_for(item_id))


@pytest.fixture
def setup():
    kv = MemoryKeyValueStore()
    catalog = make_catalog("item1", "item2", "item3")
    staging = StagingStore(TENANT, kv)
    history = OptimizationHistory(TENANT, kv)
    coordinator = PublishCoordinator(catalog, staging, history, concurrency=2)
    return catalog, staging, history, coordinator


def test_merge_takes_every_proposed_field_by_default(setup):
    catalog, staging, _, _ = setup
    _stage(staging, catalog, "item1")

    data = merge_fields(staging.get("item1"))

    assert data.title == "Improved item1"
    assert data.handle == "improved-item1"
    assert data.tags == "summer, cotton"
    assert data.seo_title == "Improved item1 | Demo"


def test_declining_the_url_keeps_the_original_handle(setup):
    catalog, staging, _, _ = setup
    _stage(staging, catalog, "item1")

    data = merge_fields(staging.get("item1"), FieldOverrides(handle=False, tags=False, seo=False))

    assert data.title == "Improved item1"
    assert data.handle == "product-item1"
    assert data.tags == "basic"
    assert data.seo_title is None


def test_original_without_handle_omits_it():
    staged = StagedResult(
        item_id="x",
        original=ProductSnapshot(title="Lamp"),
        proposed=proposal_for("x"),
        created_at=0,
    )
    assert merge_fields(staged, FieldOverrides(handle=False)).handle is None


@pytest.mark.asyncio
async def test_publish_one_writes_and_clears_the_stage(setup):
    catalog, staging, history, coordinator = setup
    _stage(staging, catalog, "item1")

    result = await coordinator.publish_one(
        "item1", PublishDirective(item_id="item1", field_overrides=FieldOverrides(handle=False))
    )

    assert result.success
    assert result.title == "Improved item1"
    assert "item1" not in staging
    assert catalog.items["item1"].snapshot.handle == "product-item1"
    assert history.status(["item1"])["item1"].title == "Improved item1"


@pytest.mark.asyncio
async def test_failed_write_keeps_the_stage(setup):
    catalog, staging, history, coordinator = setup
    _stage(staging, catalog, "item1")
    catalog.reject("item1", "Handle has already been taken")

    result = await coordinator.publish_one("item1")

    assert not result.success
    assert result.error == "Handle has already been taken"
    assert "item1" in staging
    assert history.status(["item1"])["item1"] is None


@pytest.mark.asyncio
async def test_publish_one_without_stage(setup):
    _, _, _, coordinator = setup
    result = await coordinator.publish_one("item1")
    assert not result.success
    assert result.error


@pytest.mark.asyncio
async def test_bulk_publish_isolates_failures(setup):
    catalog, staging, _, coordinator = setup
    _stage(staging, catalog, "item1", "item2", "item3")
    catalog.reject("item2", "Title is invalid")

    result = await coordinator.publish_bulk(["item1", "item2", "item3"])

    assert result.published_count == 2
    assert [(e.item_id, e.reason) for e in result.errors] == [("item2", "Title is invalid")]
    assert [entry.item_id for entry in staging.list()] == ["item2"]
    assert result.model_dump(by_alias=True) == {
        "publishedCount": 2,
        "errors": [{"itemId": "item2", "reason": "Title is invalid"}],
    }


@pytest.mark.asyncio
async def test_bulk_publish_reports_unstaged_ids(setup):
    catalog, staging, _, coordinator = setup
    _stage(staging, catalog, "item1")

    result = await coordinator.publish_bulk(["item1", "ghost"])

    assert result.published_count == 1
    assert [e.item_id for e in result.errors] == ["ghost"]


@pytest.mark.asyncio
async def test_history_failure_does_not_fail_the_publish(setup):
    catalog, staging, _, _ = setup

    class BrokenHistory(OptimizationHistory):
        def mark_optimized(self, item_id, data):
            raise RuntimeError("database is down")

    coordinator = PublishCoordinator(catalog, staging, BrokenHistory(TENANT, MemoryKeyValueStore()))
    _stage(staging, catalog, "item1")

    result = await coordinator.publish_one("item1")
    assert result.success


@pytest.mark.asyncio
async def test_orchestrator_publish_emits_one_notification():
    catalog = make_catalog("item1", "item2", "item3")
    catalog.reject("item2", "Title is invalid")
    orchestrator = make_orchestrator(catalog, ScriptedEnricher())

    orchestrator.enqueue(["item1", "item2", "item3"])
    await orchestrator.wait_idle()
    result = await orchestrator.publish_bulk()

    assert result.published_count == 2
    latest = orchestrator.notifications.recent(TENANT, limit=1)[0]
    assert latest.kind == "bulk_publish"
    assert latest.message == "Published 2 products, 1 failed"


def test_rate_limiter_rejects_past_the_window_limit():
    now = [1000.0]
    limiter = RateLimiter(clock=lambda: now[0])

    for _ in range(10):
        assert limiter.check(TENANT, "publish-bulk", 10, 60).allowed
    assert not limiter.check(TENANT, "publish-bulk", 10, 60).allowed
    with pytest.raises(RateLimitExceeded):
        limiter.hit(TENANT, "publish-bulk", 10, 60)

    # Other tenants and actions have their own windows
    assert limiter.check("other.myshopify.com", "publish-bulk", 10, 60).allowed
    assert limiter.check(TENANT, "publish", 100, 60).allowed

    now[0] += 61
    assert limiter.check(TENANT, "publish-bulk", 10, 60).allowed


@pytest.mark.asyncio
async def test_rerun_staged_during_publish_is_kept():
    catalog = make_catalog("item1")
    gate = asyncio.Event()
    write = catalog.update_product

    async def slow_write(item_id, data):
        await gate.wait()
        return await write(item_id, data)

    catalog.update_product = slow_write
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher)
    orchestrator.enqueue(["item1"])
    await orchestrator.wait_idle()

    publishing = asyncio.ensure_future(orchestrator.publish_one("item1"))
    await asyncio.sleep(0)
    orchestrator.enqueue(["item1"])
    await orchestrator.wait_idle()
    rerun = orchestrator.staging.get("item1")
    assert rerun is not None

    gate.set()
    result = await publishing

    assert result.success
    assert orchestrator.staging.get("item1") is rerun
