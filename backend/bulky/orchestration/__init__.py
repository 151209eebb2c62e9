"""
Orchestration Module
====================

Queue admission, timeout supervision and the per-tenant orchestrator.
"""

from .orchestrator import BulkEnhancementOrchestrator
from .queue import ProgressTracker, QueueManager, QueueTicket
from .registry import OrchestratorRegistry, get_registry, set_registry
from .supervisor import TimeoutSupervisor

__all__ = [
    "BulkEnhancementOrchestrator",
    "OrchestratorRegistry",
    "ProgressTracker",
    "QueueManager",
    "QueueTicket",
    "TimeoutSupervisor",
    "get_registry",
    "set_registry",
]
