"""
In-memory catalog for tests and offline runs.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..core.errors import CatalogWriteError
from ..schemas.catalog import CatalogItem, ProductSnapshot
from ..schemas.publishing import OptimizedData
from .base import CatalogGateway


class InMemoryCatalog(CatalogGateway):
    def __init__(self, items: Iterable[CatalogItem] = ()):
        self.items: Dict[str, CatalogItem] = {item.id: item for item in items}
        self.writes: List[tuple[str, OptimizedData]] = []
        self._rejections: Dict[str, str] = {}

    def add(self, item_id: str, **fields) -> CatalogItem:
        item = CatalogItem(id=item_id, snapshot=ProductSnapshot(**fields))
        self.items[item_id] = item
        return item

    def reject(self, item_id: str, message: str) -> None:
        """Make every future write of `item_id` fail like a Shopify userError."""
        self._rejections[item_id] = message

    async def get_product(self, item_id: str) -> Optional[CatalogItem]:
        return self.items.get(item_id)

    async def update_product(self, item_id: str, data: OptimizedData) -> str:
        if item_id in self._rejections:
            raise CatalogWriteError([self._rejections[item_id]])
        current = self.items.get(item_id)
        if current is None:
            raise CatalogWriteError([f"Product {item_id} does not exist"])

        self.writes.append((item_id, data))
        snapshot = current.snapshot.model_copy(
            update={
                "title": data.title,
                "description_html": data.description,
                "handle": data.handle or current.snapshot.handle,
                "product_type": data.product_type,
                "vendor": data.vendor,
                "tags": data.tag_list(),
                "seo_title": data.seo_title or current.snapshot.seo_title,
                "seo_description": data.seo_description or current.snapshot.seo_description,
            }
        )
        self.items[item_id] = CatalogItem(id=item_id, snapshot=snapshot)
        return snapshot.title
