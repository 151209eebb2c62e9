"""
Catalog Schemas
===============

Two sides of every staged change:

- ProductSnapshot: the product as it currently lives in the catalog ("before")
- ProposedSnapshot: the rewrite proposed by the enrichment service ("after")

Wire names follow the catalog/front-end convention (camelCase); Python code
uses the snake_case attribute names.
"""

from __future__ import annotations

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from unidecode import unidecode


MARKETPLACE_VENDORS = ("aliexpress", "alibaba", "dhgate")

_HANDLE_INVALID = re.compile(r"[^a-z0-9]+")


def normalize_handle(value: str) -> str:
    """Lowercase, hyphenated, ASCII-only URL handle."""
    ascii_value = unidecode(value or "").lower()
    return _HANDLE_INVALID.sub("-", ascii_value).strip("-")


def split_tags(value) -> List[str]:
    """Accept tags as a list or as a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return [str(t).strip() for t in value if str(t).strip()]


class ProductSnapshot(BaseModel):
    """Immutable copy of the catalog fields an enhancement may rewrite."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    description_html: str = Field(default="", alias="descriptionHtml")
    handle: str = ""
    product_type: str = Field(default="", alias="productType")
    vendor: str = ""
    tags: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = Field(default=None, alias="seoTitle")
    seo_description: Optional[str] = Field(default=None, alias="seoDescription")

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        return split_tags(v)


class CatalogItem(BaseModel):
    """Catalog entity: opaque id plus its current snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    snapshot: ProductSnapshot


class ProposedSnapshot(BaseModel):
    """
    Rewrite proposed by the enrichment service.

    title/description/product_type/tags/handle are required: a response missing
    any of them is rejected as a validation error. SEO fields are optional.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    product_type: str = Field(min_length=1, alias="productType")
    tags: List[str] = Field(min_length=1)
    handle: str = Field(min_length=1)
    vendor: str = ""
    seo_title: Optional[str] = Field(default=None, alias="seoTitle")
    seo_description: Optional[str] = Field(default=None, alias="seoDescription")

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        return split_tags(v)

    @field_validator("handle")
    @classmethod
    def _normalize_handle(cls, v: str) -> str:
        handle = normalize_handle(v)
        if not handle:
            raise ValueError("handle must contain at least one letter or digit")
        return handle

    @field_validator("vendor", mode="before")
    @classmethod
    def _drop_marketplace_vendor(cls, v) -> str:
        vendor = (v or "").strip()
        if any(name in vendor.lower() for name in MARKETPLACE_VENDORS):
            return ""
        return vendor
