"""
Shared fakes for the orchestration, publishing and API tests.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Dict, List, Optional, Set

import pytest

from bulky.catalog import InMemoryCatalog
from bulky.enrichment import EnrichmentClient
from bulky.notifications import NotificationCenter
from bulky.orchestration import BulkEnhancementOrchestrator, TimeoutSupervisor
from bulky.schemas import CatalogItem, EnhancementContext, ProposedSnapshot
from bulky.storage import MemoryKeyValueStore, OptimizationHistory, StagingStore

TENANT = "demo.myshopify.com"


def proposal_for(item_id: str, **overrides) -> ProposedSnapshot:
    fields = dict(
        title=f"Improved {item_id}",
        description=f"<p>Better copy for {item_id}</p>",
        product_type="Apparel",
        tags=["summer", "cotton"],
        handle=f"improved-{item_id}",
        seo_title=f"Improved {item_id} | Demo",
        seo_description=f"Buy improved {item_id}",
    )
    fields.update(overrides)
    return ProposedSnapshot(**fields)


class ScriptedEnricher(EnrichmentClient):
    """
    Enricher whose per-item behavior is scripted by the test.

    - `failures[id]`: exception raised by the call
    - `hold`: ids whose call blocks until `release(id)` (or forever)
    """

    def __init__(
        self,
        failures: Optional[Dict[str, Exception]] = None,
        hold: Optional[Set[str]] = None,
        delay: float = 0.0,
    ):
        self.failures = failures or {}
        self.hold = set(hold or ())
        self.delay = delay
        self.calls: List[str] = []
        self.contexts: List[Optional[EnhancementContext]] = []
        self.finished: List[str] = []
        self.active = 0
        self.max_active = 0
        self._started: Dict[str, asyncio.Event] = defaultdict(asyncio.Event)
        self._gates: Dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    async def started(self, item_id: str, timeout: float = 1.0) -> None:
        await asyncio.wait_for(self._started[item_id].wait(), timeout)

    def release(self, item_id: str) -> None:
        self._gates[item_id].set()

    async def propose(self, item: CatalogItem, context) -> ProposedSnapshot:
        self.calls.append(item.id)
        self.contexts.append(context)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self._started[item.id].set()
        try:
            if item.id in self.hold:
                await self._gates[item.id].wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if item.id in self.failures:
                raise self.failures[item.id]
            result = proposal_for(item.id)
            self.finished.append(item.id)
            return result
        finally:
            self.active -= 1


def make_catalog(*item_ids: str) -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    for item_id in item_ids:
        catalog.add(
            item_id,
            title=f"Product {item_id}",
            description_html=f"<p>Original {item_id}</p>",
            handle=f"product-{item_id.lower()}",
            product_type="Clothing",
            vendor="Demo Co",
            tags=["basic"],
        )
    return catalog


def make_orchestrator(
    catalog: InMemoryCatalog,
    enricher: EnrichmentClient,
    *,
    kv: Optional[MemoryKeyValueStore] = None,
    deadline: float = 1.0,
    abort_inflight: bool = True,
) -> BulkEnhancementOrchestrator:
    kv = kv or MemoryKeyValueStore()
    staging = StagingStore(TENANT, kv)
    return BulkEnhancementOrchestrator(
        TENANT,
        enricher=enricher,
        catalog=catalog,
        staging=staging,
        history=OptimizationHistory(TENANT, kv),
        notifications=NotificationCenter(),
        supervisor=TimeoutSupervisor(deadline, abort_inflight=abort_inflight),
    )


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return make_catalog("A", "B", "C", "D", "E")


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()
