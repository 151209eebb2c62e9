"""
Bulky - Vercel Serverless Entry Point
=====================================

Exposes the FastAPI application from the backend to @vercel/python.

Environment Variables (set in Vercel dashboard):
  - OPENROUTER_API_KEY: Required for AI enrichment (mock rewrite otherwise)
  - SHOPIFY_ACCESS_TOKEN: Admin API token used for catalog reads and writes
  - STAGING_BACKEND=upstash with UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN:
    staging that survives cold starts
"""

import sys
from pathlib import Path

# Serverless bundles are not pip-installed: make "bulky" and "main" importable
backend_dir = Path(__file__).resolve().parent.parent / "backend"
sys.path.insert(0, str(backend_dir))

from main import app  # noqa: E402

__all__ = ["app"]
