"""
Bulky Configuration
===================

Centralized application settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App info
    app_name: str = "Bulky"
    app_version: str = "1.0.0"
    debug: bool = False

    # Enrichment service
    enrichment_provider: Literal["openrouter", "http", "mock"] = "openrouter"
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    enrichment_model: str = "deepseek/deepseek-chat-v3-0324:free"
    enrichment_temperature: float = 0.7
    enrichment_max_tokens: int = 1500
    # Remote optimize endpoint used by the "http" provider
    enrichment_endpoint: str = "http://localhost:8000/api/optimize"

    # Timeout policy (one call at a time, fixed deadline per call)
    enrichment_timeout_seconds: float = 60.0
    abort_inflight: bool = True

    # Catalog (Shopify Admin GraphQL)
    catalog_provider: Literal["shopify", "memory"] = "shopify"
    shopify_access_token: str = ""
    shopify_api_version: str = "2025-01"

    # Staging persistence
    staging_backend: Literal["memory", "file", "upstash"] = "file"
    staging_dir: Path = Path(__file__).parent.parent.parent / "data" / "staging"
    staging_ttl_seconds: int = 60 * 60 * 24
    upstash_redis_rest_url: Optional[str] = None
    upstash_redis_rest_token: Optional[str] = None

    # Publishing
    publish_concurrency: int = 4
    publish_rate_limit: int = 100
    publish_rate_window_seconds: int = 60
    bulk_publish_rate_limit: int = 10
    bulk_publish_rate_window_seconds: int = 60

    # Notifications kept per tenant
    notification_history: int = 50

    # Tenant used when the request carries no shop header
    default_tenant: str = "default"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = False  # Must be False with wildcard origins
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
