"""
Bulk Enhancement Routes
=======================

Caller-facing actions of the orchestrator.

Endpoints:
  - POST   /enhance            (enqueue ids, starts the drain loop)
  - POST   /enhance/cancel
  - GET    /enhance/progress
  - GET    /staged
  - DELETE /staged/{item_id}
  - DELETE /staged
  - POST   /publish
  - POST   /publish/bulk
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import get_settings
from ..core.errors import RateLimitExceeded
from ..orchestration import BulkEnhancementOrchestrator, get_registry
from ..publishing.coordinator import NOT_STAGED
from ..schemas.enrichment import EnhancementContext
from ..schemas.progress import EnqueueReceipt, QueueProgress
from ..schemas.publishing import BulkPublishResult, PublishDirective, PublishResult
from ..schemas.staging import StagedResult
from .deps import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["enhance"])


class EnhanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_ids: List[str] = Field(alias="itemIds", min_length=1)
    context: Optional[EnhancementContext] = None


class StagedListResponse(BaseModel):
    count: int
    results: List[StagedResult]


class DiscardResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: Optional[str] = Field(default=None, alias="itemId")
    discarded: int


class BulkPublishRequest(BaseModel):
    """Ids to publish (all staged when omitted) and optional per-item field selection."""

    model_config = ConfigDict(populate_by_name=True)

    item_ids: Optional[List[str]] = Field(default=None, alias="itemIds")
    directives: List[PublishDirective] = Field(default_factory=list)


def _enforce_rate_limit(tenant: str, action: str, limit: int, window: int) -> None:
    try:
        get_registry().limiter.hit(tenant, action, limit, window)
    except RateLimitExceeded as e:
        logger.warning("[%s] %s", tenant, e)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please wait a moment.",
            headers={"Retry-After": str(max(1, int(e.retry_after)))},
        )


# ============================================================================
# QUEUE
# ============================================================================


@router.post("/enhance", response_model=EnqueueReceipt)
async def enhance(
    request: EnhanceRequest,
    orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator),
):
    ids = [item_id.strip() for item_id in request.item_ids if item_id.strip()]
    if not ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No product ids provided")
    return orchestrator.enqueue(ids, request.context)


@router.post("/enhance/cancel", response_model=QueueProgress)
async def cancel_enhance(orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator)):
    return orchestrator.cancel()


@router.get("/enhance/progress", response_model=QueueProgress)
async def enhance_progress(orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator)):
    return orchestrator.progress


# ============================================================================
# STAGING
# ============================================================================


@router.get("/staged", response_model=StagedListResponse)
async def list_staged(orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator)):
    results = orchestrator.staged()
    return StagedListResponse(count=len(results), results=results)


@router.delete("/staged/{item_id:path}", response_model=DiscardResponse)
async def discard_staged(
    item_id: str,
    orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator),
):
    item_id = item_id.strip()
    if not item_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No product id provided")
    removed = orchestrator.discard(item_id)
    return DiscardResponse(item_id=item_id, discarded=1 if removed else 0)


@router.delete("/staged", response_model=DiscardResponse)
async def discard_all_staged(orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator)):
    return DiscardResponse(discarded=orchestrator.discard_all())


# ============================================================================
# PUBLISH
# ============================================================================


@router.post("/publish", response_model=PublishResult)
async def publish(
    directive: PublishDirective,
    orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator),
):
    settings = get_settings()
    _enforce_rate_limit(
        orchestrator.tenant,
        "publish",
        settings.publish_rate_limit,
        settings.publish_rate_window_seconds,
    )

    if orchestrator.staging.get(directive.item_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_STAGED)

    try:
        return await orchestrator.publish_one(directive.item_id, directive)
    except Exception as e:
        logger.error("[%s] publish error: %s", orchestrator.tenant, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to publish product",
        )


@router.post("/publish/bulk", response_model=BulkPublishResult)
async def publish_bulk(
    request: BulkPublishRequest,
    orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator),
):
    settings = get_settings()
    _enforce_rate_limit(
        orchestrator.tenant,
        "publish-bulk",
        settings.bulk_publish_rate_limit,
        settings.bulk_publish_rate_window_seconds,
    )

    item_ids = request.item_ids
    if item_ids is None and request.directives:
        item_ids = [d.item_id for d in request.directives]
    if item_ids is None and not orchestrator.staged():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing staged to publish")

    try:
        return await orchestrator.publish_bulk(item_ids, request.directives)
    except Exception as e:
        logger.error("[%s] bulk publish error: %s", orchestrator.tenant, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to publish products",
        )
