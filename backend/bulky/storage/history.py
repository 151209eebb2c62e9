"""
Optimization history: which items were published with enhanced content.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional

from ..schemas.publishing import OptimizationRecord, OptimizedData
from .kv import KeyValueStore

logger = logging.getLogger(__name__)


def history_key(tenant: str) -> str:
    return f"bulky:optimized:{tenant}"


class OptimizationHistory:
    def __init__(
        self,
        tenant: str,
        kv: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.tenant = tenant
        self.kv = kv
        self._clock = clock

    def _read(self) -> Dict[str, dict]:
        raw = self.kv.get(history_key(self.tenant))
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Corrupt optimization history for %s: %s", self.tenant, e)
            return {}
        return data if isinstance(data, dict) else {}

    def mark_optimized(self, item_id: str, data: OptimizedData) -> OptimizationRecord:
        """Upsert the record for a freshly published item."""
        record = OptimizationRecord(
            item_id=item_id,
            optimized_at=self._clock(),
            title=data.title,
            handle=data.handle,
            product_type=data.product_type,
        )
        records = self._read()
        records[item_id] = record.model_dump(by_alias=True)
        self.kv.set(history_key(self.tenant), json.dumps(records, ensure_ascii=False))
        return record

    def status(self, item_ids: Iterable[str]) -> Dict[str, Optional[OptimizationRecord]]:
        """Map every requested id to its record, or None when never optimized."""
        records = self._read()
        result: Dict[str, Optional[OptimizationRecord]] = {}
        for item_id in item_ids:
            raw = records.get(item_id)
            result[item_id] = OptimizationRecord.model_validate(raw) if raw else None
        return result

    def stats(self) -> Dict[str, int]:
        records = self._read()
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0).timestamp()
        this_month = sum(
            1 for r in records.values() if float(r.get("optimizedAt", 0)) >= month_start
        )
        return {"total_optimized": len(records), "optimized_this_month": this_month}
