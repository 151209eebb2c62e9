"""
Aggregate notifications ("toasts").

Every terminal transition (queue drained, queue cancelled, publish finished)
produces exactly one Notification summarizing outcome counts. Per-item
failures during processing are never surfaced individually.

Notifications are logged and kept in a bounded per-tenant list so the UI can
poll `GET /api/notifications`.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Callable, Deque, Dict, List, Optional

from .core.errors import ErrorKind, remediation_hint
from .schemas.progress import Notification
from .schemas.publishing import BulkPublishResult, PublishResult

logger = logging.getLogger(__name__)


def drain_notification(
    tenant: str, completed: int, failed: int, failure_kinds: Optional[Counter] = None
) -> Notification:
    if completed > 0:
        message = f"Successfully optimized {completed} product(s) for review"
        if failed:
            message += f", {failed} failed"
    elif failed > 0:
        kind: ErrorKind = "unknown"
        if failure_kinds:
            kind = failure_kinds.most_common(1)[0][0]
        message = remediation_hint(kind)
    else:
        message = "Nothing to optimize"
    return Notification(
        kind="drain_complete",
        tenant=tenant,
        message=message,
        error=failed > 0,
        completed=completed,
        failed=failed,
    )


def cancel_notification(tenant: str, completed: int, failed: int) -> Notification:
    return Notification(
        kind="cancelled",
        tenant=tenant,
        message="Optimization cancelled",
        completed=completed,
        failed=failed,
    )


def publish_notification(tenant: str, result: PublishResult) -> Notification:
    if result.success:
        return Notification(
            kind="publish_succeeded",
            tenant=tenant,
            message=f"Successfully published {result.title or 'product'}",
            published=1,
        )
    return Notification(
        kind="publish_failed",
        tenant=tenant,
        message=result.error or "Publishing failed",
        error=True,
        failed=1,
    )


def bulk_publish_notification(tenant: str, result: BulkPublishResult) -> Notification:
    if result.errors:
        message = f"Published {result.published_count} products, {result.failed_count} failed"
    else:
        message = f"Successfully published {result.published_count} products"
    return Notification(
        kind="bulk_publish",
        tenant=tenant,
        message=message,
        error=bool(result.errors),
        published=result.published_count,
        failed=result.failed_count,
    )


class NotificationCenter:
    """Bounded per-tenant notification feed with optional listeners."""

    def __init__(self, max_per_tenant: int = 50):
        self.max_per_tenant = max_per_tenant
        self._feeds: Dict[str, Deque[Notification]] = {}
        self._listeners: List[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def notify(self, notification: Notification) -> Notification:
        level = logging.WARNING if notification.error else logging.INFO
        logger.log(level, "[%s] %s: %s", notification.tenant, notification.kind, notification.message)

        feed = self._feeds.setdefault(notification.tenant, deque(maxlen=self.max_per_tenant))
        feed.appendleft(notification)
        for listener in self._listeners:
            try:
                listener(notification)
            except Exception as e:
                # The notification is already in the feed
                logger.warning("Notification listener failed for %s: %s", notification.tenant, e)
        return notification

    def recent(self, tenant: str, limit: int = 20) -> List[Notification]:
        feed = self._feeds.get(tenant)
        if not feed:
            return []
        return list(feed)[:limit]
