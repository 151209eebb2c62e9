"""
Storage Module
==============

Key-value persistence backends plus the two per-tenant stores built on them:

- StagingStore: proposed-but-unpublished changes (24h TTL)
- OptimizationHistory: items published with enhanced content
"""

from .history import OptimizationHistory
from .kv import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    UpstashKeyValueStore,
    get_key_value_store,
)
from .staging import StagingStore

__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "OptimizationHistory",
    "StagingStore",
    "UpstashKeyValueStore",
    "get_key_value_store",
]
