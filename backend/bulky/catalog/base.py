"""
Catalog gateway interface.

The catalog is an external collaborator: the orchestrator only reads item
snapshots from it and the publish coordinator only writes merged field sets.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.catalog import CatalogItem
from ..schemas.publishing import OptimizedData


class CatalogGateway(ABC):
    """Read/write access to one tenant's product catalog."""

    @abstractmethod
    async def get_product(self, item_id: str) -> Optional[CatalogItem]:
        """Return the current snapshot, or None when the item does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def update_product(self, item_id: str, data: OptimizedData) -> str:
        """
        Write the merged field set.

        Returns the product title as stored after the update. Raises
        CatalogWriteError when the catalog rejects the input and
        CatalogUnavailableError when it cannot be reached.
        """
        raise NotImplementedError
