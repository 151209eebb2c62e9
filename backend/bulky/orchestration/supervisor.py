"""
Timeout supervisor for single enrichment calls.

Each call gets a fixed deadline. When it expires a `timeout` outcome is
synthesized so the queue can move on. What happens to the call itself depends
on `abort_inflight`:

- True (default): the call's task is cancelled, which closes the underlying
  HTTP request.
- False: the call is left running and retained until it finishes; its late
  result is dropped and never reaches the queue.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Set

from ..schemas.enrichment import EnrichmentOutcome

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 60.0


class TimeoutSupervisor:
    def __init__(self, deadline: float = DEFAULT_DEADLINE_SECONDS, *, abort_inflight: bool = True):
        if deadline <= 0:
            raise ValueError("deadline must be positive")
        self.deadline = deadline
        self.abort_inflight = abort_inflight
        self._orphans: Set[asyncio.Task] = set()

    @property
    def orphaned_calls(self) -> int:
        """Timed-out calls still running (only with abort_inflight=False)."""
        return len(self._orphans)

    def timeout_outcome(self, item_id: str) -> EnrichmentOutcome:
        return EnrichmentOutcome.failed(
            item_id, "timeout", f"No response within {self.deadline:g}s"
        )

    async def run(self, item_id: str, call: Awaitable[EnrichmentOutcome]) -> EnrichmentOutcome:
        task = asyncio.ensure_future(call)

        if self.abort_inflight:
            try:
                return await asyncio.wait_for(task, timeout=self.deadline)
            except asyncio.TimeoutError:
                logger.warning("Enrichment timeout for %s, request aborted", item_id)
                return self.timeout_outcome(item_id)

        try:
            done, _ = await asyncio.wait({task}, timeout=self.deadline)
        except asyncio.CancelledError:
            self._orphan(item_id, task)
            raise

        if task in done:
            return task.result()

        logger.warning("Enrichment timeout for %s, late result will be ignored", item_id)
        self._orphan(item_id, task)
        return self.timeout_outcome(item_id)

    def _orphan(self, item_id: str, task: asyncio.Task) -> None:
        self._orphans.add(task)

        def _release(finished: asyncio.Task) -> None:
            self._orphans.discard(finished)
            if finished.cancelled():
                return
            if finished.exception() is not None:
                logger.debug("Late failure for %s ignored: %s", item_id, finished.exception())
            else:
                logger.info("Late result for %s ignored", item_id)

        task.add_done_callback(_release)

    async def aclose(self) -> None:
        """Cancel calls left running after a timeout."""
        for task in list(self._orphans):
            task.cancel()
        if self._orphans:
            await asyncio.gather(*self._orphans, return_exceptions=True)
        self._orphans.clear()
