"""
Key-Value Persistence
=====================

The staging store and the optimization history only need three operations on
string values: get, set, delete. Backends:

  - memory:  process-local dict (tests, ephemeral runs)
  - file:    one JSON file per key in a directory (single-instance deployments)
  - upstash: Upstash Redis over REST (serverless deployments)

Configure with:
  - STAGING_BACKEND=memory|file|upstash
  - STAGING_DIR (file backend)
  - UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN (upstash backend)
"""

from __future__ import annotations

import hashlib
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal string key-value interface."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FileKeyValueStore(KeyValueStore):
    """One UTF-8 file per key; writes go through a temp file and a rename."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        readable = _UNSAFE_CHARS.sub("_", key)[:80]
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        return self.directory / f"{readable}-{digest}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class UpstashKeyValueStore(KeyValueStore):
    """Upstash Redis REST client."""

    def __init__(self, url: str, token: str):
        from upstash_redis import Redis

        self._redis = Redis(url=url, token=token)
        logger.info("Upstash Redis connected successfully")

    def get(self, key: str) -> Optional[str]:
        value = self._redis.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def set(self, key: str, value: str) -> None:
        self._redis.set(key, value)

    def delete(self, key: str) -> None:
        self._redis.delete(key)


def get_key_value_store(
    backend: Optional[str] = None, settings: Optional[Settings] = None
) -> KeyValueStore:
    """Factory returning the configured key-value backend."""
    settings = settings or get_settings()
    backend = backend or settings.staging_backend

    if backend == "upstash":
        if not (settings.upstash_redis_rest_url and settings.upstash_redis_rest_token):
            raise ValueError(
                "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN are required "
                "for the upstash staging backend"
            )
        return UpstashKeyValueStore(
            url=settings.upstash_redis_rest_url,
            token=settings.upstash_redis_rest_token,
        )

    if backend == "file":
        logger.info("Staging persisted under %s", settings.staging_dir)
        return FileKeyValueStore(settings.staging_dir)

    return MemoryKeyValueStore()
