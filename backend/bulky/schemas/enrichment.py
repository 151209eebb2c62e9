"""
Enrichment Schemas
==================

- EnhancementContext: guidance supplied once per enqueue batch
- EnrichmentOutcome: result of exactly one enrichment attempt
- OptimizeRequest / OptimizeResponse: the single-item wire contract
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.errors import ErrorKind
from .catalog import ProposedSnapshot


class EnhancementContext(BaseModel):
    """Optional guidance applied to every item of an enqueue batch."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_keywords: Optional[str] = Field(default=None, alias="targetKeywords")
    brand: Optional[str] = None
    key_features: Optional[str] = Field(default=None, alias="keyFeatures")
    target_audience: Optional[str] = Field(default=None, alias="targetAudience")
    use_case: Optional[str] = Field(default=None, alias="useCase")
    competitor_analysis: bool = Field(default=False, alias="competitorAnalysis")
    voice_search_optimization: bool = Field(default=False, alias="voiceSearchOptimization")
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")

    def is_empty(self) -> bool:
        return self == EnhancementContext()


class EnrichmentOutcome(BaseModel):
    """
    Immutable result of one enrichment attempt.

    A successful outcome always carries the proposed snapshot; a failed one
    always carries an error kind.
    """

    model_config = ConfigDict(frozen=True)

    item_id: str
    success: bool
    proposed: Optional[ProposedSnapshot] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "EnrichmentOutcome":
        if self.success and self.proposed is None:
            raise ValueError("successful outcome requires a proposed snapshot")
        if not self.success and self.error_kind is None:
            raise ValueError("failed outcome requires an error kind")
        return self

    @classmethod
    def ok(cls, item_id: str, proposed: ProposedSnapshot) -> "EnrichmentOutcome":
        return cls(item_id=item_id, success=True, proposed=proposed)

    @classmethod
    def failed(
        cls, item_id: str, kind: ErrorKind, error: Optional[str] = None
    ) -> "EnrichmentOutcome":
        return cls(item_id=item_id, success=False, error_kind=kind, error=error)


# ============================================================================
# WIRE CONTRACT
# ============================================================================


class OptimizeRequest(BaseModel):
    """`{ itemIds: [singleId], context }` - exactly one id per call."""

    model_config = ConfigDict(populate_by_name=True)

    item_ids: List[str] = Field(alias="itemIds", min_length=1, max_length=1)
    context: Optional[EnhancementContext] = None


class OptimizeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    success: bool
    proposed_data: Optional[ProposedSnapshot] = Field(default=None, alias="proposedData")
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = Field(default=None, alias="errorKind")

    @classmethod
    def from_outcome(cls, outcome: EnrichmentOutcome) -> "OptimizeResult":
        return cls(
            id=outcome.item_id,
            success=outcome.success,
            proposed_data=outcome.proposed,
            error=outcome.error,
            error_kind=outcome.error_kind,
        )

    def to_outcome(self) -> EnrichmentOutcome:
        if self.success and self.proposed_data is not None:
            return EnrichmentOutcome.ok(self.id, self.proposed_data)
        return EnrichmentOutcome.failed(
            self.id,
            self.error_kind or ("validation_error" if self.success else "unknown"),
            self.error or ("Missing proposed data" if self.success else None),
        )


class OptimizeResponse(BaseModel):
    """`{ results: [{ id, success, proposedData?, error? }] }`"""

    results: List[OptimizeResult]
