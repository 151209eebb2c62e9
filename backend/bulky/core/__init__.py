"""
Bulky Core
==========

Configuration, settings and the shared error taxonomy.
"""

from .config import Settings, get_settings
from .errors import (
    BulkyError,
    CatalogError,
    CatalogUnavailableError,
    CatalogWriteError,
    EnrichmentError,
    ErrorKind,
    RateLimitExceeded,
    classify_exception,
)

__all__ = [
    "Settings",
    "get_settings",
    "BulkyError",
    "CatalogError",
    "CatalogUnavailableError",
    "CatalogWriteError",
    "EnrichmentError",
    "ErrorKind",
    "RateLimitExceeded",
    "classify_exception",
]
