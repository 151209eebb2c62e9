"""
Staging Store
=============

Durable map from item id to a reviewable proposed change, scoped to one tenant.

- Entries are created from successful enrichment outcomes only
- A re-run replaces the entry wholesale
- Publishing or discarding deletes the entry (nothing is kept as "published")
- Unpublished entries older than the TTL are purged when the store is loaded

The whole map is stored under one key as a flat JSON object and written through
on every mutation. There is no locking: all writes come from the tenant's
orchestrator on a single event loop.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from ..schemas.catalog import ProductSnapshot, ProposedSnapshot
from ..schemas.staging import StagedResult
from .kv import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60 * 24


def staging_key(tenant: str) -> str:
    return f"bulky:staging:{tenant}"


class StagingStore:
    """Per-tenant staging area backed by a KeyValueStore."""

    def __init__(
        self,
        tenant: str,
        kv: KeyValueStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.tenant = tenant
        self.kv = kv
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, StagedResult] = {}
        self.load()

    @property
    def key(self) -> str:
        return staging_key(self.tenant)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read the persisted map and purge expired entries once."""
        raw = self.kv.get(self.key)
        self._entries = {}
        if not raw:
            return

        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("staging payload is not an object")
            dropped = 0
            for item_id, data in payload.items():
                entry = StagedResult.from_storage(item_id, data)
                if entry.published:
                    dropped += 1
                    continue
                self._entries[item_id] = entry
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.error("Failed to parse staged results for %s: %s", self.tenant, e)
            self._entries = {}
            self.kv.delete(self.key)
            return

        purged = self.purge_expired(self.ttl_seconds)
        if dropped and not purged:
            self._save()

    def _save(self) -> None:
        if not self._entries:
            self.kv.delete(self.key)
            return
        payload = {item_id: entry.to_storage() for item_id, entry in self._entries.items()}
        self.kv.set(self.key, json.dumps(payload, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def put(
        self, item_id: str, original: ProductSnapshot, proposed: ProposedSnapshot
    ) -> StagedResult:
        """Insert or replace the entry for `item_id`."""
        entry = StagedResult(
            item_id=item_id,
            original=original,
            proposed=proposed,
            created_at=self._clock(),
            published=False,
        )
        previous = self._entries.get(item_id)
        self._entries[item_id] = entry
        try:
            self._save()
        except Exception:
            if previous is None:
                del self._entries[item_id]
            else:
                self._entries[item_id] = previous
            raise
        logger.debug("Staged %s for %s", item_id, self.tenant)
        return entry

    def get(self, item_id: str) -> Optional[StagedResult]:
        return self._entries.get(item_id)

    def list(self) -> List[StagedResult]:
        return sorted(self._entries.values(), key=lambda e: e.created_at)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def remove(self, item_id: str, expected: Optional[StagedResult] = None) -> bool:
        """
        Delete an entry. Returns False (and does nothing) if it is absent.

        With `expected`, only that exact entry is deleted; a newer entry
        staged under the same id in the meantime is kept.
        """
        current = self._entries.get(item_id)
        if current is None or (expected is not None and current is not expected):
            return False
        del self._entries[item_id]
        self._save()
        return True

    def discard_all(self) -> int:
        count = len(self._entries)
        self._entries = {}
        self._save()
        return count

    def purge_expired(self, max_age_seconds: int = DEFAULT_TTL_SECONDS) -> int:
        """Delete unpublished entries older than `max_age_seconds`."""
        now = self._clock()
        expired = [
            item_id
            for item_id, entry in self._entries.items()
            if not entry.published and entry.age_seconds(now) > max_age_seconds
        ]
        for item_id in expired:
            del self._entries[item_id]
        if expired:
            logger.info("Purged %d expired staged result(s) for %s", len(expired), self.tenant)
            self._save()
        return len(expired)
