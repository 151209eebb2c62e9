"""
Shopify Admin GraphQL Catalog
=============================

Serverless-friendly GraphQL client for the Shopify Admin API.

  POST https://{shop}/admin/api/{version}/graphql.json
  Headers: X-Shopify-Access-Token: {token}

Top-level GraphQL `errors` and HTTP failures raise CatalogUnavailableError;
mutation `userErrors` raise CatalogWriteError with the messages.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.errors import CatalogUnavailableError, CatalogWriteError
from ..schemas.catalog import CatalogItem, ProductSnapshot
from ..schemas.publishing import OptimizedData
from .base import CatalogGateway

logger = logging.getLogger(__name__)


PRODUCT_QUERY = """
query getProduct($id: ID!) {
  product(id: $id) {
    id
    title
    descriptionHtml
    handle
    productType
    vendor
    tags
    seo {
      title
      description
    }
  }
}
"""

PRODUCT_UPDATE_MUTATION = """
mutation updateProduct($input: ProductInput!) {
  productUpdate(input: $input) {
    product {
      id
      title
      handle
    }
    userErrors {
      field
      message
    }
  }
}
"""


def shop_domain(shop: str) -> str:
    """`my-shop` -> `my-shop.myshopify.com`; full domains are kept as-is."""
    shop = shop.strip().removeprefix("https://").rstrip("/")
    return shop if "." in shop else f"{shop}.myshopify.com"


def build_product_input(item_id: str, data: OptimizedData) -> Dict[str, Any]:
    """ProductInput for `productUpdate`; handle and SEO only when provided."""
    product_input: Dict[str, Any] = {
        "id": item_id,
        "title": data.title,
        "descriptionHtml": data.description,
        "productType": data.product_type,
        "vendor": data.vendor or "",
        "tags": data.tag_list(),
    }
    if data.handle:
        product_input["handle"] = data.handle
    if data.seo_title or data.seo_description:
        seo: Dict[str, str] = {}
        if data.seo_title:
            seo["title"] = data.seo_title
        if data.seo_description:
            seo["description"] = data.seo_description
        product_input["seo"] = seo
    return product_input


class ShopifyCatalog(CatalogGateway):
    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        api_version: str = "2025-01",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not access_token:
            raise ValueError("Shopify access token missing for catalog client")
        self.shop = shop_domain(shop)
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    json={"query": query, "variables": variables or {}},
                    headers=headers,
                )
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPError as e:
            logger.error("Shopify GraphQL request failed for %s: %s", self.shop, e)
            raise CatalogUnavailableError(f"GraphQL request failed: {e}") from e

        errors = result.get("errors")
        if errors:
            message = errors[0].get("message", "unknown error") if isinstance(errors, list) else str(errors)
            raise CatalogUnavailableError(f"GraphQL Error: {message}")
        return result.get("data") or {}

    async def get_product(self, item_id: str) -> Optional[CatalogItem]:
        data = await self.graphql(PRODUCT_QUERY, {"id": item_id})
        product = data.get("product")
        if not product:
            logger.warning("Product not found in catalog: %s", item_id)
            return None

        seo = product.get("seo") or {}
        snapshot = ProductSnapshot(
            title=product.get("title") or "",
            description_html=product.get("descriptionHtml") or "",
            handle=product.get("handle") or "",
            product_type=product.get("productType") or "",
            vendor=product.get("vendor") or "",
            tags=product.get("tags") or [],
            seo_title=seo.get("title"),
            seo_description=seo.get("description"),
        )
        return CatalogItem(id=product.get("id") or item_id, snapshot=snapshot)

    async def update_product(self, item_id: str, data: OptimizedData) -> str:
        data_out = await self.graphql(
            PRODUCT_UPDATE_MUTATION, {"input": build_product_input(item_id, data)}
        )
        payload = data_out.get("productUpdate") or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            messages = [e.get("message", "") for e in user_errors]
            logger.error("Shopify update errors for %s: %s", item_id, messages)
            raise CatalogWriteError(messages)

        product = payload.get("product")
        if not product:
            raise CatalogWriteError(["No product returned from update mutation"])
        return product.get("title") or data.title
