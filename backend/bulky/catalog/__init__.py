"""
Catalog Module
==============

Gateways to the merchant's product catalog (Shopify Admin GraphQL, in-memory).
"""

import logging
from typing import Optional

from ..core.config import Settings, get_settings
from .base import CatalogGateway
from .memory import InMemoryCatalog
from .shopify import ShopifyCatalog

logger = logging.getLogger(__name__)


def get_catalog(tenant: str, settings: Optional[Settings] = None) -> CatalogGateway:
    """Factory returning the configured catalog gateway for a tenant."""
    settings = settings or get_settings()
    if settings.catalog_provider == "shopify":
        try:
            return ShopifyCatalog(
                tenant,
                settings.shopify_access_token,
                api_version=settings.shopify_api_version,
            )
        except ValueError as exc:
            logger.warning("Falling back to in-memory catalog for %s: %s", tenant, exc)
    return InMemoryCatalog()


__all__ = ["CatalogGateway", "InMemoryCatalog", "ShopifyCatalog", "get_catalog"]
