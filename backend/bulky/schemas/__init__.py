"""
Bulky Schemas
=============

Pydantic schemas for structured data.

- catalog: ProductSnapshot, ProposedSnapshot, CatalogItem
- enrichment: EnhancementContext, EnrichmentOutcome, optimize wire contract
- staging: StagedResult
- publishing: directives, publish payloads and results
- progress: QueueProgress, ItemProgress, EnqueueReceipt, Notification
"""

from .catalog import CatalogItem, ProductSnapshot, ProposedSnapshot
from .enrichment import (
    EnhancementContext,
    EnrichmentOutcome,
    OptimizeRequest,
    OptimizeResponse,
    OptimizeResult,
)
from .progress import EnqueueReceipt, ItemProgress, Notification, QueueProgress
from .publishing import (
    BulkPublishPayload,
    BulkPublishResult,
    FieldOverrides,
    OptimizationRecord,
    OptimizedData,
    PublishDirective,
    PublishError,
    PublishPayload,
    PublishResult,
)
from .staging import StagedResult

__all__ = [
    "CatalogItem",
    "ProductSnapshot",
    "ProposedSnapshot",
    "EnhancementContext",
    "EnrichmentOutcome",
    "OptimizeRequest",
    "OptimizeResponse",
    "OptimizeResult",
    "EnqueueReceipt",
    "ItemProgress",
    "Notification",
    "QueueProgress",
    "BulkPublishPayload",
    "BulkPublishResult",
    "FieldOverrides",
    "OptimizationRecord",
    "OptimizedData",
    "PublishDirective",
    "PublishError",
    "PublishPayload",
    "PublishResult",
    "StagedResult",
]
