"""
Product Enricher
================

Rewrites one catalog item via an LLM for SEO and conversion:
- title: 60-70 characters, keyword first
- description: 150-250 words of HTML (<p>, <strong>, <ul><li>)
- productType: "Category > Subcategory > Specific Type"
- tags: 5-10 strategic tags
- handle: short lowercase hyphenated URL handle
- vendor: brand name or empty (never a marketplace name)

Each call enriches exactly one item with exactly one outbound request: no
retries, no caching, no batching. Failures are returned as typed outcomes,
never raised.

Providers:
  - openrouter: OpenAI-compatible chat completions (default: OpenRouter)
  - http:       remote optimize endpoint speaking the `{itemIds, context}` contract
  - mock:       deterministic offline rewrite
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI

from ..core.config import Settings, get_settings
from ..core.errors import EnrichmentError, classify_exception, describe_exception
from ..schemas.catalog import CatalogItem, ProposedSnapshot, normalize_handle
from ..schemas.enrichment import (
    EnhancementContext,
    EnrichmentOutcome,
    OptimizeRequest,
    OptimizeResponse,
)

logger = logging.getLogger(__name__)


ENRICHMENT_SYSTEM_PROMPT = (
    "You are an expert e-commerce SEO specialist with deep knowledge of current best "
    "practices, Shopify optimization, and conversion rate optimization. You create "
    "compelling product content that ranks well in search engines and converts "
    "visitors into customers."
)

ENRICHMENT_PROMPT = """TASK: Optimize this Shopify product for maximum search visibility and conversion.

=== CURRENT PRODUCT DATA ===
Title: {title}
Description: {description}
Product Type: {product_type}
Tags: {tags}
Handle: {handle}{context_block}{instructions_block}

=== OPTIMIZATION REQUIREMENTS ===

TITLE (60-70 characters): [Primary Keyword] + [Brand/Model] + [Key Attribute] - [Secondary Benefit]
DESCRIPTION (150-250 words): benefit-driven hook, 3-5 bullet points, natural Q&A for voice
search, soft call to action. Use HTML: <p>, <strong>, <ul><li>, <br>.
PRODUCT TYPE: "Category > Subcategory > Specific Type"
TAGS (5-10): primary keyword, brand, attributes, use cases, long-tail variations
HANDLE (5-6 words max): lowercase, hyphenated, no stop words, brand + key attributes
VENDOR: the brand name or an empty string, never a marketplace (AliExpress, Alibaba, DHgate)

ALWAYS WRITE IN ENGLISH.
RESPOND WITH ONLY THIS JSON (no markdown, no explanations):
{{
  "title": "...",
  "description": "...",
  "productType": "...",
  "tags": ["..."],
  "handle": "...",
  "vendor": "..."
}}"""


def build_context_block(context: Optional[EnhancementContext]) -> str:
    if context is None or context.is_empty():
        return ""
    return (
        "\n\nADDITIONAL CONTEXT:\n"
        f"- Target Keywords: {context.target_keywords or 'Auto-detect from product'}\n"
        f"- Brand: {context.brand or 'Auto-detect from product'}\n"
        f"- Key Features: {context.key_features or 'Auto-extract from description'}\n"
        f"- Target Audience: {context.target_audience or 'General consumers'}\n"
        f"- Primary Use Case: {context.use_case or 'General use'}\n"
        "- Voice Search Focus: "
        f"{'Yes - include natural Q&A' if context.voice_search_optimization else 'Standard optimization'}\n"
        "- Competitor Analysis: "
        f"{'Yes - use competitive keywords' if context.competitor_analysis else 'Product-focused'}"
    )


def build_instructions_block(context: Optional[EnhancementContext]) -> str:
    if context is None or not context.special_instructions:
        return ""
    return (
        "\n\nSPECIAL INSTRUCTIONS (MUST FOLLOW):\n"
        f"{context.special_instructions}\n\n"
        "These special instructions take priority over every other requirement."
    )


def build_prompt(item: CatalogItem, context: Optional[EnhancementContext] = None) -> str:
    snapshot = item.snapshot
    return ENRICHMENT_PROMPT.format(
        title=snapshot.title,
        description=snapshot.description_html or "No description provided",
        product_type=snapshot.product_type or "Uncategorized",
        tags=", ".join(snapshot.tags) if snapshot.tags else "No tags",
        handle=snapshot.handle,
        context_block=build_context_block(context),
        instructions_block=build_instructions_block(context),
    )


def parse_proposed(raw: str) -> ProposedSnapshot:
    """Parse the model's JSON answer into a validated ProposedSnapshot."""
    content = (raw or "").strip()

    # Clean up potential markdown code blocks
    if content.startswith("```"):
        content = re.sub(r"```json?\s*", "", content)
        content = content.replace("```", "").strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise EnrichmentError("validation_error", f"Invalid JSON response from AI: {e}") from e

    if not isinstance(data, dict):
        raise EnrichmentError("validation_error", "AI response is not a JSON object")

    try:
        return ProposedSnapshot.model_validate(data)
    except ValueError as e:
        raise EnrichmentError("validation_error", "AI response missing required fields") from e


# ============================================================================
# CLIENTS
# ============================================================================


class EnrichmentClient(ABC):
    """One remote call per item, mapped to a typed outcome."""

    async def submit(
        self, item: CatalogItem, context: Optional[EnhancementContext] = None
    ) -> EnrichmentOutcome:
        """
        Enrich a single item.

        Never raises for service failures: they come back as a failed outcome
        with an error kind. Cancellation propagates.
        """
        try:
            proposed = await self.propose(item, context)
        except Exception as e:
            kind = classify_exception(e)
            logger.warning("Enrichment failed for %s (%s): %s", item.id, kind, e)
            return EnrichmentOutcome.failed(item.id, kind, describe_exception(e))

        logger.info("Enrichment complete for %s: %s", item.id, proposed.title[:60])
        return EnrichmentOutcome.ok(item.id, proposed)

    @abstractmethod
    async def propose(
        self, item: CatalogItem, context: Optional[EnhancementContext]
    ) -> ProposedSnapshot:
        """Issue the outbound request; raise on any failure."""
        raise NotImplementedError


class OpenRouterEnrichmentClient(EnrichmentClient):
    """
    Enricher backed by an OpenAI-compatible chat completions API.

    Usage:
        client = OpenRouterEnrichmentClient(api_key="...")
        outcome = await client.submit(item, context)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        settings = get_settings()
        api_key = api_key or settings.openrouter_api_key
        if not (api_key or client):
            raise ValueError("OpenRouter API key missing for enrichment client")

        self.model = model or settings.enrichment_model
        self.temperature = settings.enrichment_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.enrichment_max_tokens
        # max_retries=0: a single attempt per item
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or settings.openrouter_base_url,
            timeout=timeout or settings.enrichment_timeout_seconds,
            max_retries=0,
            default_headers={"X-Title": settings.app_name},
        )

    async def propose(
        self, item: CatalogItem, context: Optional[EnhancementContext]
    ) -> ProposedSnapshot:
        prompt = build_prompt(item, context)
        logger.debug("Enrichment prompt for %s:\n%s", item.id, prompt)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": ENRICHMENT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise EnrichmentError("unknown", "No content received from AI")
        return parse_proposed(content)


class HttpEnrichmentClient(EnrichmentClient):
    """Client for a remote optimize endpoint (`POST {itemIds: [id], context}`)."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 60.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.headers = headers or {}
        self._transport = transport

    async def propose(
        self, item: CatalogItem, context: Optional[EnhancementContext]
    ) -> ProposedSnapshot:
        request = OptimizeRequest(item_ids=[item.id], context=context)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.endpoint,
                json=request.model_dump(by_alias=True, exclude_none=True),
                headers=self.headers,
            )
            response.raise_for_status()
            payload = OptimizeResponse.model_validate(response.json())

        if len(payload.results) != 1 or payload.results[0].id != item.id:
            raise EnrichmentError(
                "validation_error",
                f"Expected exactly one result for {item.id}, got {len(payload.results)}",
            )

        result = payload.results[0]
        if not result.success or result.proposed_data is None:
            raise EnrichmentError(result.error_kind or "unknown", result.error or "Enrichment failed")
        return result.proposed_data


class MockEnrichmentClient(EnrichmentClient):
    """
    Deterministic offline enricher for tests and keyless environments.

    Produces a plausible rewrite from the current snapshot and context.
    """

    async def propose(
        self, item: CatalogItem, context: Optional[EnhancementContext]
    ) -> ProposedSnapshot:
        snapshot = item.snapshot
        brand = (context.brand if context else None) or snapshot.vendor
        keywords = []
        if context and context.target_keywords:
            keywords = [k.strip() for k in context.target_keywords.split(",") if k.strip()]

        title = " ".join(p for p in [brand, snapshot.title] if p).strip() or item.id
        description = (
            f"<p><strong>{title}</strong></p>"
            f"<p>{snapshot.description_html or snapshot.title}</p>"
        )
        tags = list(dict.fromkeys([*snapshot.tags, *keywords])) or [snapshot.title.lower() or item.id]
        product_type = snapshot.product_type or "General"

        return ProposedSnapshot(
            title=title[:70],
            description=description,
            product_type=product_type,
            tags=tags,
            handle=normalize_handle(title) or normalize_handle(item.id) or "product",
            vendor=brand or "",
        )


def get_enrichment_client(
    provider: Optional[str] = None, settings: Optional[Settings] = None
) -> EnrichmentClient:
    """Factory returning the configured enrichment client."""
    settings = settings or get_settings()
    provider = provider or settings.enrichment_provider

    if provider == "openrouter":
        try:
            return OpenRouterEnrichmentClient(
                api_key=settings.openrouter_api_key,
                timeout=settings.enrichment_timeout_seconds,
            )
        except ValueError as exc:
            logger.warning("Falling back to mock enrichment: %s", exc)
            return MockEnrichmentClient()

    if provider == "http":
        return HttpEnrichmentClient(
            settings.enrichment_endpoint,
            timeout=settings.enrichment_timeout_seconds,
        )

    return MockEnrichmentClient()
