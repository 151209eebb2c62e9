"""
API Module
==========

FastAPI routers mounted under `settings.api_prefix`.
"""

from .enhance import router as enhance_router
from .routes import router

__all__ = ["enhance_router", "router"]
