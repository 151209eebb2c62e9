"""
Drain loop, cancellation and timeout behavior of the orchestrator.
"""

from __future__ import annotations

import asyncio

import pytest

from bulky.core.errors import EnrichmentError, remediation_hint
from bulky.schemas import CatalogItem, EnhancementContext, ProductSnapshot
from bulky.storage import MemoryKeyValueStore

from conftest import ScriptedEnricher, make_catalog, make_orchestrator


def _kinds(orchestrator) -> list[str]:
    return [n.kind for n in orchestrator.notifications.recent(orchestrator.tenant)]


@pytest.mark.asyncio
async def test_items_are_processed_one_at_a_time_in_order(catalog):
    enricher = ScriptedEnricher(delay=0.01)
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["C", "A", "E", "B", "D"])
    progress = await orchestrator.wait_idle()

    assert enricher.calls == ["C", "A", "E", "B", "D"]
    assert enricher.max_active == 1
    assert progress.completed == 5
    assert progress.state == "idle"


@pytest.mark.asyncio
async def test_mixed_outcomes_stage_only_successes(catalog):
    enricher = ScriptedEnricher(hold={"B"})
    orchestrator = make_orchestrator(catalog, enricher, deadline=0.05)

    orchestrator.enqueue(["A", "B", "C"])
    progress = await orchestrator.wait_idle()

    assert progress.completed == 2
    assert progress.failed == 1
    assert progress.queued == 0
    assert progress.current_item_id is None
    assert {entry.item_id for entry in orchestrator.staged()} == {"A", "C"}


@pytest.mark.asyncio
async def test_timeout_releases_the_slot_within_the_deadline(catalog):
    enricher = ScriptedEnricher(hold={"A"})
    orchestrator = make_orchestrator(catalog, enricher, deadline=0.05)
    loop = asyncio.get_running_loop()

    started = loop.time()
    orchestrator.enqueue(["A", "B"])
    await enricher.started("B")
    elapsed = loop.time() - started

    assert elapsed < 0.05 + 0.5
    await orchestrator.wait_idle()
    assert orchestrator.progress.failed == 1
    assert "B" in orchestrator.staging


@pytest.mark.asyncio
async def test_timeout_cancels_the_inflight_call(catalog):
    enricher = ScriptedEnricher(hold={"A"})
    orchestrator = make_orchestrator(catalog, enricher, deadline=0.05)

    orchestrator.enqueue(["A"])
    await orchestrator.wait_idle()

    assert enricher.active == 0
    assert orchestrator.supervisor.orphaned_calls == 0


@pytest.mark.asyncio
async def test_late_result_after_timeout_is_ignored(catalog):
    enricher = ScriptedEnricher(hold={"A"})
    orchestrator = make_orchestrator(catalog, enricher, deadline=0.05, abort_inflight=False)

    orchestrator.enqueue(["A"])
    await orchestrator.wait_idle()
    assert orchestrator.supervisor.orphaned_calls == 1

    enricher.release("A")
    await asyncio.sleep(0.05)

    assert enricher.finished == ["A"]
    assert "A" not in orchestrator.staging
    assert orchestrator.progress.failed == 1
    assert orchestrator.supervisor.orphaned_calls == 0


@pytest.mark.asyncio
async def test_cancel_drops_the_active_result(catalog):
    enricher = ScriptedEnricher(hold={"B"})
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["A", "B"])
    await enricher.started("B")
    progress = orchestrator.cancel()
    enricher.release("B")
    await asyncio.sleep(0.05)

    assert "B" not in orchestrator.staging
    assert progress.state == "idle"
    assert (progress.completed, progress.failed, progress.total) == (0, 0, 0)
    assert orchestrator.progress.state == "idle"
    assert _kinds(orchestrator) == ["cancelled"]


@pytest.mark.asyncio
async def test_cancel_without_abort_discards_the_late_outcome(catalog):
    enricher = ScriptedEnricher(hold={"B"})
    orchestrator = make_orchestrator(catalog, enricher, abort_inflight=False)

    orchestrator.enqueue(["A", "B"])
    await enricher.started("B")
    orchestrator.cancel()
    enricher.release("B")
    await asyncio.sleep(0.05)

    assert enricher.finished == ["A", "B"]
    assert "B" not in orchestrator.staging
    progress = orchestrator.progress
    assert (progress.completed, progress.failed, progress.total) == (0, 0, 0)
    assert _kinds(orchestrator) == ["cancelled"]


@pytest.mark.asyncio
async def test_new_run_after_cancel_is_not_blocked(catalog):
    enricher = ScriptedEnricher(hold={"A"})
    orchestrator = make_orchestrator(catalog, enricher, abort_inflight=False)

    orchestrator.enqueue(["A"])
    await enricher.started("A")
    orchestrator.cancel()

    orchestrator.enqueue(["B"])
    progress = await orchestrator.wait_idle()

    assert "B" in orchestrator.staging
    assert progress.completed == 1
    assert progress.total == 1

    enricher.release("A")
    await asyncio.sleep(0.05)
    assert "A" not in orchestrator.staging
    assert orchestrator.progress.completed == 1


@pytest.mark.asyncio
async def test_one_failure_does_not_abort_the_queue(catalog):
    enricher = ScriptedEnricher(failures={"B": EnrichmentError("quota_exceeded", "credits exhausted")})
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["A", "B", "C"])
    progress = await orchestrator.wait_idle()

    assert progress.completed == 2
    assert progress.failed == 1
    assert "B" not in orchestrator.staging

    [notification] = orchestrator.notifications.recent(orchestrator.tenant)
    assert notification.kind == "drain_complete"
    assert notification.message == "Successfully optimized 2 product(s) for review, 1 failed"
    assert notification.error


@pytest.mark.asyncio
async def test_all_failures_surface_the_remediation_hint(catalog):
    quota = EnrichmentError("quota_exceeded", "credits exhausted")
    enricher = ScriptedEnricher(failures={"A": quota, "B": quota})
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["A", "B"])
    await orchestrator.wait_idle()

    [notification] = orchestrator.notifications.recent(orchestrator.tenant)
    assert notification.message == remediation_hint("quota_exceeded")
    assert notification.failed == 2


@pytest.mark.asyncio
async def test_unknown_product_fails_as_validation_error(catalog):
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["missing"])
    progress = await orchestrator.wait_idle()

    assert progress.failed == 1
    assert enricher.calls == []


@pytest.mark.asyncio
async def test_enqueue_while_active_extends_the_run(catalog):
    enricher = ScriptedEnricher(hold={"A"})
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["A"])
    await enricher.started("A")
    receipt = orchestrator.enqueue(["B", "A"])
    assert receipt.accepted == ["B"]
    assert receipt.skipped == ["A"]

    enricher.release("A")
    progress = await orchestrator.wait_idle()

    assert progress.total == 2
    assert progress.completed == 2
    assert _kinds(orchestrator) == ["drain_complete"]


@pytest.mark.asyncio
async def test_reenqueue_supersedes_the_staged_result(catalog):
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher)
    orchestrator.enqueue(["A"])
    await orchestrator.wait_idle()
    assert "A" in orchestrator.staging

    receipt = orchestrator.enqueue(["A"], start=False)

    assert receipt.superseded == ["A"]
    assert "A" not in orchestrator.staging


@pytest.mark.asyncio
async def test_context_is_applied_to_every_item_of_the_batch(catalog):
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher)
    context = EnhancementContext(brand="Acme", target_keywords="linen, summer")

    orchestrator.enqueue(["A", "B"], context)
    await orchestrator.wait_idle()

    assert enricher.contexts == [context, context]


@pytest.mark.asyncio
async def test_one_notification_per_drain(catalog):
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["A", "B"])
    await orchestrator.wait_idle()
    orchestrator.enqueue(["C"])
    await orchestrator.wait_idle()

    notifications = orchestrator.notifications.recent(orchestrator.tenant)
    assert [n.kind for n in notifications] == ["drain_complete", "drain_complete"]
    assert notifications[0].completed == 1
    assert notifications[1].completed == 2


def test_cancel_while_idle_is_silent(catalog):
    orchestrator = make_orchestrator(catalog, ScriptedEnricher())
    progress = orchestrator.cancel()
    assert progress.state == "idle"
    assert _kinds(orchestrator) == []


@pytest.mark.asyncio
async def test_canonical_catalog_ids_do_not_stall_the_queue():
    catalog = make_catalog()
    for n in ("1", "2"):
        catalog.items[n] = CatalogItem(
            id=f"gid://shopify/Product/{n}", snapshot=ProductSnapshot(title=f"Lamp {n}")
        )
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher)

    orchestrator.enqueue(["1", "2"])
    progress = await orchestrator.wait_idle()

    assert progress.state == "idle"
    assert progress.completed == 2
    assert [entry.item_id for entry in orchestrator.staged()] == ["1", "2"]
    assert _kinds(orchestrator) == ["drain_complete"]


@pytest.mark.asyncio
async def test_staging_write_failure_fails_the_item_and_keeps_draining(catalog):
    class FlakyStore(MemoryKeyValueStore):
        broken = True

        def set(self, key, value):
            if self.broken:
                raise ConnectionError("redis is down")
            super().set(key, value)

    kv = FlakyStore()
    enricher = ScriptedEnricher()
    orchestrator = make_orchestrator(catalog, enricher, kv=kv)

    orchestrator.enqueue(["A", "B", "C"])
    progress = await orchestrator.wait_idle()

    assert enricher.calls == ["A", "B", "C"]
    assert progress.state == "idle"
    assert progress.completed == 0
    assert progress.failed == 3
    assert {item.error_kind for item in progress.items} == {"service_unavailable"}
    assert orchestrator.staged() == []

    [notification] = orchestrator.notifications.recent(orchestrator.tenant)
    assert notification.kind == "drain_complete"
    assert notification.error

    kv.broken = False
    orchestrator.enqueue(["A"])
    assert (await orchestrator.wait_idle()).completed == 1
    assert "A" in orchestrator.staging


@pytest.mark.asyncio
async def test_progress_names_the_failed_items(catalog):
    enricher = ScriptedEnricher(hold={"B"})
    orchestrator = make_orchestrator(catalog, enricher, deadline=0.05)

    orchestrator.enqueue(["A", "B", "C"])
    progress = await orchestrator.wait_idle()

    assert [(i.item_id, i.status) for i in progress.items] == [
        ("A", "completed"),
        ("B", "failed"),
        ("C", "completed"),
    ]
    [failed] = progress.failed_items()
    assert failed.error_kind == "timeout"

    orchestrator.enqueue(["B"], start=False)
    assert [(i.item_id, i.status) for i in orchestrator.progress.items] == [("B", "queued")]
    assert orchestrator.cancel().items == []
