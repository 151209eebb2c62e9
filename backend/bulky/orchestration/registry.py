"""
Per-tenant orchestrator registry.

Shared across tenants: the key-value backend, the enrichment client, the
notification center and the publish rate limiter. Everything else (queue,
staging, history, catalog) is built lazily per tenant from settings.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..catalog import CatalogGateway, get_catalog
from ..core.config import Settings, get_settings
from ..enrichment.enricher import EnrichmentClient, HttpEnrichmentClient, get_enrichment_client
from ..notifications import NotificationCenter
from ..publishing.coordinator import PublishCoordinator
from ..publishing.ratelimit import RateLimiter
from ..storage.history import OptimizationHistory
from ..storage.kv import KeyValueStore, get_key_value_store
from ..storage.staging import StagingStore
from .orchestrator import BulkEnhancementOrchestrator
from .supervisor import TimeoutSupervisor

logger = logging.getLogger(__name__)


class OrchestratorRegistry:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        kv: Optional[KeyValueStore] = None,
        enricher: Optional[EnrichmentClient] = None,
        optimizer: Optional[EnrichmentClient] = None,
        catalog_factory: Optional[Callable[[str], CatalogGateway]] = None,
        notifications: Optional[NotificationCenter] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        self.settings = settings or get_settings()
        self.kv = kv or get_key_value_store(settings=self.settings)
        self.enricher = enricher or get_enrichment_client(settings=self.settings)
        self.catalog_factory = catalog_factory or (lambda tenant: get_catalog(tenant, self.settings))
        self.notifications = notifications or NotificationCenter(self.settings.notification_history)
        self.limiter = limiter or RateLimiter()

        # Serves POST /optimize; never the HTTP client, which would call itself
        if optimizer is None:
            optimizer = self.enricher
            if isinstance(optimizer, HttpEnrichmentClient):
                optimizer = get_enrichment_client("openrouter", self.settings)
        self.optimizer = optimizer

        self._orchestrators: Dict[str, BulkEnhancementOrchestrator] = {}

    def get(self, tenant: str) -> BulkEnhancementOrchestrator:
        orchestrator = self._orchestrators.get(tenant)
        if orchestrator is None:
            orchestrator = self._build(tenant)
            self._orchestrators[tenant] = orchestrator
        return orchestrator

    def tenants(self) -> List[str]:
        return list(self._orchestrators)

    def _build(self, tenant: str) -> BulkEnhancementOrchestrator:
        s = self.settings
        catalog = self.catalog_factory(tenant)
        staging = StagingStore(tenant, self.kv, ttl_seconds=s.staging_ttl_seconds)
        history = OptimizationHistory(tenant, self.kv)
        logger.info("Orchestrator ready for %s (%d staged result(s))", tenant, len(staging))

        return BulkEnhancementOrchestrator(
            tenant,
            enricher=self.enricher,
            catalog=catalog,
            staging=staging,
            history=history,
            notifications=self.notifications,
            supervisor=TimeoutSupervisor(
                s.enrichment_timeout_seconds, abort_inflight=s.abort_inflight
            ),
            publisher=PublishCoordinator(
                catalog, staging, history, concurrency=s.publish_concurrency
            ),
        )

    async def aclose(self) -> None:
        """Cancel every running queue and release timed-out calls."""
        for orchestrator in self._orchestrators.values():
            orchestrator.cancel()
            await orchestrator.supervisor.aclose()


_registry: Optional[OrchestratorRegistry] = None


def get_registry() -> OrchestratorRegistry:
    global _registry
    if _registry is None:
        _registry = OrchestratorRegistry()
    return _registry


def set_registry(registry: Optional[OrchestratorRegistry]) -> None:
    global _registry
    _registry = registry
