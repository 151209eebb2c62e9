"""
Publishing Module
=================

Committing reviewed results to the catalog, singly or in bulk.
"""

from .coordinator import PublishCoordinator, merge_fields
from .ratelimit import RateLimiter, RateLimitResult

__all__ = ["PublishCoordinator", "RateLimiter", "RateLimitResult", "merge_fields"]
