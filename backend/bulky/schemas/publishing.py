"""
Publishing Schemas
==================

Request/response models for committing staged results back to the catalog.

- FieldOverrides / PublishDirective: which proposed fields are applied
- OptimizedData: the merged field set written to the catalog
- PublishPayload / BulkPublishPayload: `{itemId, optimizedData}` and
  `{productsData: [{id, optimizedData}]}`
- PublishResult / BulkPublishResult: per-call outcomes
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FieldOverrides(BaseModel):
    """
    Selects which proposed fields are applied.

    A field set to False reverts to the original snapshot value; e.g.
    `handle=False` keeps the product URL unchanged.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: bool = True
    description: bool = True
    product_type: bool = Field(default=True, alias="productType")
    vendor: bool = True
    tags: bool = True
    handle: bool = True
    seo: bool = True


class PublishDirective(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_id: str = Field(alias="itemId", min_length=1)
    field_overrides: FieldOverrides = Field(default_factory=FieldOverrides, alias="fieldOverrides")


class OptimizedData(BaseModel):
    """Field set sent to the catalog. `handle` is omitted when the URL is kept."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    handle: Optional[str] = None
    product_type: str = Field(default="", alias="productType")
    vendor: str = ""
    tags: str = ""
    seo_title: Optional[str] = Field(default=None, alias="seoTitle")
    seo_description: Optional[str] = Field(default=None, alias="seoDescription")

    def tag_list(self) -> List[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]


class PublishPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(alias="itemId", min_length=1)
    optimized_data: OptimizedData = Field(alias="optimizedData")


class BulkPublishEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    optimized_data: OptimizedData = Field(alias="optimizedData")


class BulkPublishPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products_data: List[BulkPublishEntry] = Field(alias="productsData", min_length=1)


class PublishResult(BaseModel):
    """`{ success, itemId, title?, error? }`"""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    item_id: str = Field(alias="itemId")
    title: Optional[str] = None
    error: Optional[str] = None


class PublishError(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(alias="itemId")
    reason: str


class BulkPublishResult(BaseModel):
    """`{ publishedCount, errors: [{ itemId, reason }] }`"""

    model_config = ConfigDict(populate_by_name=True)

    published_count: int = Field(default=0, alias="publishedCount")
    errors: List[PublishError] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.errors)


class OptimizationRecord(BaseModel):
    """An item that was published with enhanced content."""

    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(alias="itemId")
    optimized_at: float = Field(alias="optimizedAt")
    title: Optional[str] = None
    handle: Optional[str] = None
    product_type: Optional[str] = Field(default=None, alias="productType")
