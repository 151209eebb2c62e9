"""
Bulky API
=========

Main entry point for the bulk product enhancement service.

Features:
- FIFO enrichment queue, one AI call at a time per shop
- Review staging with 24h expiry (memory, file or Upstash Redis)
- Selective single and bulk publishing to Shopify
- Aggregate notifications for every finished run
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bulky.api import enhance_router
from bulky.api import router as api_router
from bulky.core.config import get_settings
from bulky.orchestration import get_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Enrichment: %s (%s)", settings.enrichment_provider, settings.enrichment_model)
    logger.info("Staging backend: %s", settings.staging_backend)
    logger.info(
        "Timeout: %gs, abort in-flight: %s",
        settings.enrichment_timeout_seconds,
        "ON" if settings.abort_inflight else "OFF",
    )

    yield

    logger.info("Shutting down %s.", settings.app_name)
    await get_registry().aclose()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Bulk AI enhancement of product listings with review before publish",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url=None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)
app.include_router(enhance_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "status": "running",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
