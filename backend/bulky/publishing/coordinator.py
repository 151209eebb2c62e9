"""
Publish Coordinator
===================

Commits staged results back to the catalog.

- One catalog write per item
- The merged field set takes each proposed field only when the directive
  selects it; otherwise the original snapshot value is written back (declining
  the handle keeps the product URL)
- Success deletes the staged entry; failure leaves it for a retry
- Bulk publish is NOT transactional: items succeed or fail independently and
  nothing already written is rolled back
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from ..catalog.base import CatalogGateway
from ..core.errors import CatalogError
from ..schemas.publishing import (
    BulkPublishEntry,
    BulkPublishPayload,
    BulkPublishResult,
    FieldOverrides,
    OptimizedData,
    PublishDirective,
    PublishError,
    PublishPayload,
    PublishResult,
)
from ..schemas.staging import StagedResult
from ..storage.history import OptimizationHistory
from ..storage.staging import StagingStore

logger = logging.getLogger(__name__)

NOT_STAGED = "No staged result for this item"


def merge_fields(staged: StagedResult, overrides: Optional[FieldOverrides] = None) -> OptimizedData:
    """Pick each field from the proposal or from the original snapshot."""
    o = overrides or FieldOverrides()
    before = staged.original
    after = staged.proposed

    tags = after.tags if o.tags else before.tags
    return OptimizedData(
        title=after.title if o.title else before.title,
        description=after.description if o.description else before.description_html,
        handle=after.handle if o.handle else (before.handle or None),
        product_type=after.product_type if o.product_type else before.product_type,
        vendor=after.vendor if o.vendor else before.vendor,
        tags=", ".join(tags),
        seo_title=after.seo_title if o.seo else before.seo_title,
        seo_description=after.seo_description if o.seo else before.seo_description,
    )


class PublishCoordinator:
    def __init__(
        self,
        catalog: CatalogGateway,
        staging: StagingStore,
        history: Optional[OptimizationHistory] = None,
        *,
        concurrency: int = 4,
    ):
        self.catalog = catalog
        self.staging = staging
        self.history = history
        self.concurrency = max(1, concurrency)

    def build_payload(
        self, staged: StagedResult, directive: Optional[PublishDirective] = None
    ) -> PublishPayload:
        """Merged payload for a staged item."""
        overrides = directive.field_overrides if directive else None
        return PublishPayload(item_id=staged.item_id, optimized_data=merge_fields(staged, overrides))

    async def publish_one(
        self, item_id: str, directive: Optional[PublishDirective] = None
    ) -> PublishResult:
        staged = self.staging.get(item_id)
        if staged is None:
            return PublishResult(success=False, item_id=item_id, error=NOT_STAGED)
        try:
            payload = self.build_payload(staged, directive)
        except ValidationError as e:
            logger.error("Invalid product data for %s: %s", item_id, e)
            return PublishResult(success=False, item_id=item_id, error="Invalid product data")
        return await self._write(staged, payload.optimized_data)

    async def publish_bulk(
        self,
        item_ids: Iterable[str],
        directives: Optional[Iterable[PublishDirective]] = None,
    ) -> BulkPublishResult:
        by_id: Dict[str, PublishDirective] = {d.item_id: d for d in (directives or [])}
        ids = list(dict.fromkeys(item_ids))

        errors: List[PublishError] = []
        entries: List[BulkPublishEntry] = []
        read: Dict[str, StagedResult] = {}
        for item_id in ids:
            staged = self.staging.get(item_id)
            if staged is None:
                errors.append(PublishError(item_id=item_id, reason=NOT_STAGED))
                continue
            try:
                payload = self.build_payload(staged, by_id.get(item_id))
            except ValidationError as e:
                logger.error("Invalid product data for %s: %s", item_id, e)
                errors.append(PublishError(item_id=item_id, reason="Invalid product data"))
                continue
            read[item_id] = staged
            entries.append(BulkPublishEntry(id=item_id, optimized_data=payload.optimized_data))

        if not entries:
            return BulkPublishResult(published_count=0, errors=errors)

        batch = BulkPublishPayload(products_data=entries)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _guarded(entry: BulkPublishEntry) -> PublishResult:
            async with semaphore:
                return await self._write(read[entry.id], entry.optimized_data)

        results = await asyncio.gather(*(_guarded(e) for e in batch.products_data))

        published = 0
        for result in results:
            if result.success:
                published += 1
            else:
                errors.append(PublishError(item_id=result.item_id, reason=result.error or "Unknown error"))

        order = {item_id: i for i, item_id in enumerate(ids)}
        errors.sort(key=lambda e: order.get(e.item_id, len(order)))
        logger.info("Bulk publish: %d published, %d failed", published, len(errors))
        return BulkPublishResult(published_count=published, errors=errors)

    async def _write(self, staged: StagedResult, data: OptimizedData) -> PublishResult:
        item_id = staged.item_id
        try:
            title = await self.catalog.update_product(item_id, data)
        except CatalogError as e:
            logger.error("Publish failed for %s: %s", item_id, e)
            return PublishResult(success=False, item_id=item_id, error=str(e))
        except Exception as e:
            logger.error("Unexpected error publishing %s: %s", item_id, e, exc_info=True)
            return PublishResult(success=False, item_id=item_id, error=str(e) or "Unknown error")

        # A re-run staged while the write was in flight is kept for review
        if not self.staging.remove(item_id, staged):
            logger.info("Staged result for %s changed during publish, left in place", item_id)
        logger.info("Published %s: %s", item_id, title)
        self._record_history(item_id, data)
        return PublishResult(success=True, item_id=item_id, title=title)

    def _record_history(self, item_id: str, data: OptimizedData) -> None:
        if self.history is None:
            return
        try:
            self.history.mark_optimized(item_id, data)
        except Exception as e:
            # The catalog write already succeeded
            logger.warning("Failed to record optimization of %s: %s", item_id, e)
