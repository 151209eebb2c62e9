"""
Enrichment Module
=================

Single-item product enrichment via an external AI service.
"""

from .enricher import (
    EnrichmentClient,
    HttpEnrichmentClient,
    MockEnrichmentClient,
    OpenRouterEnrichmentClient,
    get_enrichment_client,
)

__all__ = [
    "EnrichmentClient",
    "HttpEnrichmentClient",
    "MockEnrichmentClient",
    "OpenRouterEnrichmentClient",
    "get_enrichment_client",
]
