"""
Shared request dependencies.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from ..core.config import get_settings
from ..orchestration import BulkEnhancementOrchestrator, get_registry


def get_tenant(x_shop_domain: Optional[str] = Header(default=None)) -> str:
    """Tenant from the `X-Shop-Domain` header, or the configured default."""
    tenant = (x_shop_domain or "").strip().lower()
    return tenant or get_settings().default_tenant


def get_orchestrator(tenant: str = Depends(get_tenant)) -> BulkEnhancementOrchestrator:
    return get_registry().get(tenant)
