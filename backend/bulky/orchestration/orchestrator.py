"""
Bulk Enhancement Orchestrator
=============================

Owns the queue, the staging store and the notification feed of ONE tenant,
and is the only way to mutate them.

Drain loop (one worker task per orchestrator):

    while ticket := queue.advance():
        snapshot = await catalog.get_product(ticket.item_id)
        outcome  = await supervisor.run(enricher.submit(snapshot, context))
        queue.on_outcome(outcome, ticket.generation)

The generation token is compared after every await; an outcome that arrives
after `cancel()` is dropped and the stale worker exits.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

from ..catalog.base import CatalogGateway
from ..core.errors import CatalogError, classify_exception, describe_exception
from ..enrichment.enricher import EnrichmentClient
from ..notifications import (
    NotificationCenter,
    bulk_publish_notification,
    cancel_notification,
    drain_notification,
    publish_notification,
)
from ..publishing.coordinator import PublishCoordinator
from ..schemas.catalog import CatalogItem
from ..schemas.enrichment import EnhancementContext, EnrichmentOutcome
from ..schemas.progress import EnqueueReceipt, QueueProgress
from ..schemas.publishing import BulkPublishResult, PublishDirective, PublishResult
from ..schemas.staging import StagedResult
from ..storage.history import OptimizationHistory
from ..storage.staging import StagingStore
from .queue import QueueManager, QueueTicket
from .supervisor import TimeoutSupervisor

logger = logging.getLogger(__name__)


class BulkEnhancementOrchestrator:
    """
    Per-tenant coordinator for bulk enrichment, review and publishing.

    Usage:
        orchestrator = BulkEnhancementOrchestrator(
            "shop.myshopify.com",
            enricher=get_enrichment_client(),
            catalog=get_catalog("shop.myshopify.com"),
            staging=StagingStore("shop.myshopify.com", kv),
        )
        orchestrator.enqueue(["gid://shopify/Product/1", "gid://shopify/Product/2"])
        await orchestrator.wait_idle()
        await orchestrator.publish_bulk()
    """

    def __init__(
        self,
        tenant: str,
        *,
        enricher: EnrichmentClient,
        catalog: CatalogGateway,
        staging: StagingStore,
        history: Optional[OptimizationHistory] = None,
        notifications: Optional[NotificationCenter] = None,
        supervisor: Optional[TimeoutSupervisor] = None,
        publisher: Optional[PublishCoordinator] = None,
    ):
        self.tenant = tenant
        self.enricher = enricher
        self.catalog = catalog
        self.staging = staging
        self.history = history
        self.notifications = notifications or NotificationCenter()
        self.supervisor = supervisor or TimeoutSupervisor()
        self.publisher = publisher or PublishCoordinator(catalog, staging, history)

        self.queue = QueueManager()
        self._worker: Optional[asyncio.Task] = None

    # ========================================================================
    # QUEUE ACTIONS
    # ========================================================================

    def enqueue(
        self,
        item_ids: Iterable[str],
        context: Optional[EnhancementContext] = None,
        *,
        start: bool = True,
    ) -> EnqueueReceipt:
        """
        Add ids to the queue and make sure the drain loop is running.

        Ids that already have a staged result are accepted and their stage
        is dropped; ids already queued or active are skipped.
        """
        accepted, skipped = self.queue.enqueue(list(item_ids), context)
        superseded = [item_id for item_id in accepted if self.staging.remove(item_id)]
        if superseded:
            logger.info("[%s] Re-running %d staged item(s)", self.tenant, len(superseded))

        logger.info(
            "[%s] Enqueued %d item(s), %d skipped, %d queued in total",
            self.tenant,
            len(accepted),
            len(skipped),
            len(self.queue.pending),
        )
        if start and self.queue.state == "active":
            self._ensure_worker()

        return EnqueueReceipt(
            accepted=accepted,
            skipped=skipped,
            superseded=superseded,
            progress=self.progress,
        )

    def cancel(self) -> QueueProgress:
        """Drop every queued and active item and reset the counters."""
        was_active = self.queue.state == "active"
        completed = self.queue.tracker.completed
        failed = self.queue.tracker.failed

        dropped = self.queue.cancel()

        worker, self._worker = self._worker, None
        if worker is not None and not worker.done() and self.supervisor.abort_inflight:
            worker.cancel()

        if was_active:
            logger.info("[%s] Cancelled, %d item(s) dropped", self.tenant, dropped)
            self.notifications.notify(cancel_notification(self.tenant, completed, failed))
        return self.progress

    @property
    def progress(self) -> QueueProgress:
        return self.queue.progress()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    # ========================================================================
    # STAGING ACTIONS
    # ========================================================================

    def staged(self) -> List[StagedResult]:
        return self.staging.list()

    def discard(self, item_id: str) -> bool:
        """Drop one staged result. Idempotent; emits no notification."""
        removed = self.staging.remove(item_id)
        if removed:
            logger.info("[%s] Discarded staged result for %s", self.tenant, item_id)
        return removed

    def discard_all(self) -> int:
        count = self.staging.discard_all()
        if count:
            logger.info("[%s] Discarded %d staged result(s)", self.tenant, count)
        return count

    # ========================================================================
    # PUBLISH ACTIONS
    # ========================================================================

    async def publish_one(
        self, item_id: str, directive: Optional[PublishDirective] = None
    ) -> PublishResult:
        result = await self.publisher.publish_one(item_id, directive)
        self.notifications.notify(publish_notification(self.tenant, result))
        return result

    async def publish_bulk(
        self,
        item_ids: Optional[Iterable[str]] = None,
        directives: Optional[Iterable[PublishDirective]] = None,
    ) -> BulkPublishResult:
        """Publish the given staged items, or every staged item when no ids are given."""
        if item_ids is None:
            item_ids = [entry.item_id for entry in self.staging.list()]
        result = await self.publisher.publish_bulk(item_ids, directives)
        self.notifications.notify(bulk_publish_notification(self.tenant, result))
        return result

    # ========================================================================
    # DRAIN LOOP
    # ========================================================================

    def _ensure_worker(self) -> None:
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._worker = loop.create_task(self.run_until_idle())
        self._worker.add_done_callback(self._on_worker_done)

    def _on_worker_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[%s] Drain loop crashed: %s", self.tenant, exc, exc_info=exc)

    async def run_until_idle(self) -> QueueProgress:
        """Process queued items one at a time until the queue is empty."""
        while True:
            ticket = self.queue.advance()
            if ticket is None:
                break

            item, outcome = await self._process(ticket)
            if outcome is not None:
                self._record(ticket, item, outcome)

            if ticket.generation != self.queue.generation:
                logger.debug("[%s] Stale drain loop stopped", self.tenant)
                break
        return self.progress

    async def wait_idle(self) -> QueueProgress:
        """Wait for the current drain loop (and any successor) to finish."""
        while self._worker is not None and not self._worker.done():
            await asyncio.wait({self._worker})
        return self.progress

    async def _process(
        self, ticket: QueueTicket
    ) -> Tuple[Optional[CatalogItem], Optional[EnrichmentOutcome]]:
        item_id = ticket.item_id
        try:
            item = await self.catalog.get_product(item_id)
        except CatalogError as e:
            logger.warning("[%s] Could not load %s: %s", self.tenant, item_id, e)
            return None, EnrichmentOutcome.failed(item_id, "service_unavailable", str(e))
        except Exception as e:
            logger.error("[%s] Could not load %s: %s", self.tenant, item_id, e, exc_info=True)
            return None, EnrichmentOutcome.failed(item_id, classify_exception(e), describe_exception(e))

        if item is None:
            return None, EnrichmentOutcome.failed(item_id, "validation_error", "Product not found")
        if ticket.generation != self.queue.generation:
            return item, None

        try:
            outcome = await self.supervisor.run(
                item_id, self.enricher.submit(item, ticket.context)
            )
        except Exception as e:
            logger.error("[%s] Enrichment crashed for %s: %s", self.tenant, item_id, e, exc_info=True)
            outcome = EnrichmentOutcome.failed(item_id, "unknown", describe_exception(e))

        # The catalog may answer with a canonical id; the queue only knows the requested one
        if outcome.item_id != item_id:
            logger.debug("[%s] %s resolved to %s", self.tenant, item_id, outcome.item_id)
            outcome = outcome.model_copy(update={"item_id": item_id})
        return item, outcome

    def _record(
        self,
        ticket: QueueTicket,
        item: Optional[CatalogItem],
        outcome: EnrichmentOutcome,
    ) -> None:
        if ticket.generation != self.queue.generation:
            logger.info("[%s] Discarding outcome for %s from a cancelled run", self.tenant, ticket.item_id)
            return

        if outcome.success and item is not None and outcome.proposed is not None:
            try:
                self.staging.put(ticket.item_id, item.snapshot, outcome.proposed)
            except Exception as e:
                logger.error("[%s] Could not stage %s: %s", self.tenant, ticket.item_id, e, exc_info=True)
                outcome = EnrichmentOutcome.failed(
                    ticket.item_id,
                    "service_unavailable",
                    f"Could not save the result: {describe_exception(e)}",
                )

        if not self.queue.on_outcome(outcome, ticket.generation):
            return

        if self.queue.state == "idle":
            tracker = self.queue.tracker
            self.notifications.notify(
                drain_notification(
                    self.tenant, tracker.completed, tracker.failed, tracker.failure_kinds()
                )
            )
