"""
Progress & Notification Schemas
===============================

Read-only views handed to callers: queue progress, enqueue receipts and the
aggregate notifications emitted on terminal transitions.
"""

from __future__ import annotations

import time
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ErrorKind

QueuePhase = Literal["idle", "active"]
ItemPhase = Literal["queued", "active", "completed", "failed"]

NotificationKind = Literal[
    "drain_complete",
    "cancelled",
    "publish_succeeded",
    "publish_failed",
    "bulk_publish",
]


class ItemProgress(BaseModel):
    """Status of one id in the current run; failures carry their error kind."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    item_id: str = Field(alias="id")
    status: ItemPhase
    error_kind: Optional[ErrorKind] = Field(default=None, alias="errorKind")
    error: Optional[str] = None


class QueueProgress(BaseModel):
    """Aggregate counters and per-item statuses derived from queue and outcome events."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    state: QueuePhase = "idle"
    queued: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
    current_item_id: Optional[str] = Field(default=None, alias="currentItemId")
    items: List[ItemProgress] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    def failed_items(self) -> List[ItemProgress]:
        return [item for item in self.items if item.status == "failed"]


class EnqueueReceipt(BaseModel):
    """What happened to each id passed to `enqueue`."""

    model_config = ConfigDict(populate_by_name=True)

    accepted: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    superseded: List[str] = Field(default_factory=list)
    progress: QueueProgress = Field(default_factory=QueueProgress)


class Notification(BaseModel):
    """One aggregate, user-facing message (the "toast")."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: NotificationKind
    tenant: str
    message: str
    error: bool = False
    completed: int = 0
    failed: int = 0
    published: int = 0
    created_at: float = Field(default_factory=time.time, alias="createdAt")
