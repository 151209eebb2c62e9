"""
Bulky API Routes
================

Service-level routes.

Endpoints:
  - POST /optimize             (enrichment wire contract, one id per call)
  - GET  /notifications
  - GET  /optimization-status
  - GET  /health
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import get_settings
from ..core.errors import CatalogError
from ..orchestration import BulkEnhancementOrchestrator, get_registry
from ..schemas.enrichment import (
    EnrichmentOutcome,
    OptimizeRequest,
    OptimizeResponse,
    OptimizeResult,
)
from ..schemas.progress import Notification
from ..schemas.publishing import OptimizationRecord
from .deps import get_orchestrator, get_tenant

logger = logging.getLogger(__name__)

router = APIRouter(tags=["service"])


class NotificationsResponse(BaseModel):
    count: int
    notifications: List[Notification]


class OptimizationStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    statuses: Dict[str, Optional[OptimizationRecord]]
    total_optimized: int = Field(alias="totalOptimized")
    optimized_this_month: int = Field(alias="optimizedThisMonth")


@router.post("/optimize", response_model=OptimizeResponse, response_model_exclude_none=True)
async def optimize(
    request: OptimizeRequest,
    orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator),
):
    item_id = request.item_ids[0]
    try:
        item = await orchestrator.catalog.get_product(item_id)
    except CatalogError as e:
        logger.warning("[%s] catalog unavailable for %s: %s", orchestrator.tenant, item_id, e)
        outcome = EnrichmentOutcome.failed(item_id, "service_unavailable", str(e))
        return OptimizeResponse(results=[OptimizeResult.from_outcome(outcome)])

    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    try:
        outcome = await get_registry().optimizer.submit(item, request.context)
    except Exception as e:
        logger.error("[%s] optimize error: %s", orchestrator.tenant, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to optimize product",
        )
    return OptimizeResponse(results=[OptimizeResult.from_outcome(outcome)])


@router.get("/notifications", response_model=NotificationsResponse)
async def notifications(
    tenant: str = Depends(get_tenant),
    limit: int = Query(default=20, ge=1, le=200, description="Number of notifications to retrieve"),
):
    """Most recent aggregate notifications for the tenant, newest first."""
    recent = get_registry().notifications.recent(tenant, limit)
    return NotificationsResponse(count=len(recent), notifications=recent)


@router.get("/optimization-status", response_model=OptimizationStatusResponse)
async def optimization_status(
    ids: List[str] = Query(default=[]),
    orchestrator: BulkEnhancementOrchestrator = Depends(get_orchestrator),
):
    if orchestrator.history is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No optimization history")

    try:
        statuses = orchestrator.history.status(ids)
        stats = orchestrator.history.stats()
    except Exception as e:
        logger.error("[%s] failed to read optimization history: %s", orchestrator.tenant, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to read optimization history: {str(e)}",
        )

    return OptimizationStatusResponse(
        statuses=statuses,
        total_optimized=stats["total_optimized"],
        optimized_this_month=stats["optimized_this_month"],
    )


@router.get("/health")
async def health():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "enrichment": settings.enrichment_provider,
        "catalog": settings.catalog_provider,
        "staging": settings.staging_backend,
    }
