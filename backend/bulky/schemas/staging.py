"""
Staging Schemas
===============

A StagedResult is the reviewable "before/after" pair of one item. It is only
ever created from a successful EnrichmentOutcome and never mutated in place.

Persisted layout (one flat JSON object per tenant):

    {
      "<itemId>": {
        "originalData": {...},
        "optimizedData": {...},
        "timestamp": 1737000000000,   # epoch milliseconds
        "isPublished": false
      }
    }
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from .catalog import ProductSnapshot, ProposedSnapshot


class StagedResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_id: str = Field(alias="id")
    original: ProductSnapshot = Field(alias="originalData")
    proposed: ProposedSnapshot = Field(alias="optimizedData")
    created_at: float = Field(alias="createdAt", description="Epoch seconds")
    published: bool = Field(default=False, alias="isPublished")

    def age_seconds(self, now: float) -> float:
        return now - self.created_at

    def to_storage(self) -> Dict[str, Any]:
        """Serialize to the persisted per-item layout."""
        return {
            "originalData": self.original.model_dump(by_alias=True),
            "optimizedData": self.proposed.model_dump(by_alias=True),
            "timestamp": int(self.created_at * 1000),
            "isPublished": self.published,
        }

    @classmethod
    def from_storage(cls, item_id: str, raw: Dict[str, Any]) -> "StagedResult":
        return cls(
            item_id=item_id,
            original=ProductSnapshot.model_validate(raw["originalData"]),
            proposed=ProposedSnapshot.model_validate(raw["optimizedData"]),
            created_at=float(raw["timestamp"]) / 1000.0,
            published=bool(raw.get("isPublished", False)),
        )
