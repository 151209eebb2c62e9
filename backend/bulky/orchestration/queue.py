"""
Queue Manager & Progress Tracker
================================

Admission control for enrichment calls: pending ids are processed in FIFO
order, exactly one at a time.

State machine:

    Idle  --enqueue-->  Active  --drain / cancel-->  Idle

- `enqueue` only appends; processing is driven by `advance`
- `advance` pops the head only when no item is active (idempotent otherwise)
- `on_outcome` is the only operation that frees the active slot
- `cancel` drops everything and bumps the generation; outcomes carrying an
  older generation or a different item id are discarded

The active id is never also present in the pending sequence.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Tuple

from ..schemas.enrichment import EnhancementContext, EnrichmentOutcome
from ..schemas.progress import ItemPhase, ItemProgress, QueuePhase, QueueProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueTicket:
    """An admitted item: what to submit, with which context, in which generation."""

    item_id: str
    context: Optional[EnhancementContext]
    generation: int


class ProgressTracker:
    """
    Aggregate counters plus the status of every id of the current run.

    A run starts with an enqueue from Idle and ends with the next one, or
    with `cancel`. Item statuses are kept in admission order.
    """

    def __init__(self) -> None:
        self.completed = 0
        self.failed = 0
        self.total = 0
        self.items: Dict[str, ItemProgress] = {}

    def reset(self, total: int = 0) -> None:
        self.completed = 0
        self.failed = 0
        self.total = total
        self.items = {}

    def extend(self, count: int) -> None:
        self.total += count

    def mark(self, item_id: str, status: ItemPhase) -> None:
        self.items.pop(item_id, None)
        self.items[item_id] = ItemProgress(item_id=item_id, status=status)

    def record(self, outcome: EnrichmentOutcome) -> None:
        if outcome.success:
            self.completed += 1
            self.items[outcome.item_id] = ItemProgress(item_id=outcome.item_id, status="completed")
        else:
            self.failed += 1
            self.items[outcome.item_id] = ItemProgress(
                item_id=outcome.item_id,
                status="failed",
                error_kind=outcome.error_kind,
                error=outcome.error,
            )

    def failure_kinds(self) -> Counter:
        return Counter(i.error_kind for i in self.items.values() if i.status == "failed")

    def snapshot(self, *, queued: int, current: Optional[str]) -> QueueProgress:
        active = 1 if current is not None else 0
        return QueueProgress(
            state="active" if (queued or active) else "idle",
            queued=queued,
            active=active,
            completed=self.completed,
            failed=self.failed,
            total=self.total,
            current_item_id=current,
            items=list(self.items.values()),
        )


class QueueManager:
    def __init__(self) -> None:
        self._pending: Deque[str] = deque()
        self._contexts: Dict[str, Optional[EnhancementContext]] = {}
        self._current: Optional[str] = None
        self._generation = 0
        self.tracker = ProgressTracker()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueuePhase:
        return "active" if (self._pending or self._current is not None) else "idle"

    @property
    def current(self) -> Optional[str]:
        return self._current

    @property
    def pending(self) -> Tuple[str, ...]:
        return tuple(self._pending)

    @property
    def generation(self) -> int:
        return self._generation

    def progress(self) -> QueueProgress:
        return self.tracker.snapshot(queued=len(self._pending), current=self._current)

    def is_queued(self, item_id: str) -> bool:
        return item_id == self._current or item_id in self._contexts

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def enqueue(
        self, item_ids: Iterable[str], context: Optional[EnhancementContext] = None
    ) -> Tuple[List[str], List[str]]:
        """
        Append ids in order. Returns (accepted, skipped).

        Ids already pending or active are skipped, as are repeats within the
        batch. Starting from Idle resets the counters; otherwise the new ids
        are added to the running total.
        """
        accepted: List[str] = []
        skipped: List[str] = []
        for item_id in item_ids:
            if self.is_queued(item_id) or item_id in accepted:
                skipped.append(item_id)
            else:
                accepted.append(item_id)

        if self.state == "idle":
            self.tracker.reset(total=len(accepted))
        else:
            self.tracker.extend(len(accepted))

        for item_id in accepted:
            self._pending.append(item_id)
            self._contexts[item_id] = context
            self.tracker.mark(item_id, "queued")

        if skipped:
            logger.info("Skipped %d id(s) already queued: %s", len(skipped), skipped)
        return accepted, skipped

    def advance(self) -> Optional[QueueTicket]:
        """Admit the next pending id, unless one is already active."""
        if self._current is not None or not self._pending:
            return None
        item_id = self._pending.popleft()
        context = self._contexts.pop(item_id, None)
        self._current = item_id
        self.tracker.items[item_id] = ItemProgress(item_id=item_id, status="active")
        logger.debug("Admitted %s (%d still queued)", item_id, len(self._pending))
        return QueueTicket(item_id=item_id, context=context, generation=self._generation)

    def on_outcome(self, outcome: EnrichmentOutcome, generation: Optional[int] = None) -> bool:
        """
        Release the active slot for `outcome`.

        Returns False, changing nothing, when the outcome does not belong to
        the active item of the current generation.
        """
        if generation is not None and generation != self._generation:
            logger.info("Discarding outcome for %s from a cancelled run", outcome.item_id)
            return False
        if self._current is None or outcome.item_id != self._current:
            logger.info("Discarding outcome for inactive item %s", outcome.item_id)
            return False

        self._current = None
        self.tracker.record(outcome)
        return True

    def cancel(self) -> int:
        """Drop pending and active ids, zero the counters. Returns how many ids were dropped."""
        dropped = len(self._pending) + (1 if self._current is not None else 0)
        self._pending.clear()
        self._contexts.clear()
        self._current = None
        self._generation += 1
        self.tracker.reset()
        return dropped
