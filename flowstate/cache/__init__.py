"""Cache store factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowstateConfig, load_config
from .base import BaseCacheStore
from .inmemory import InMemoryCacheStore


def get_cache_store(
    backend: Optional[str] = None, config: Optional[FlowstateConfig] = None
) -> BaseCacheStore:
    """Factory function to get the configured cache store."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("FLOWSTATE_CACHE_BACKEND")
        or config.persistence.cache.backend
    ).lower()

    if backend == "memory":
        return InMemoryCacheStore()
    elif backend == "redis":
        from .redis import RedisCacheStore

        redis_conf = config.persistence.cache.redis
        return RedisCacheStore(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
        )
    else:
        raise ValueError(f"Unsupported cache backend: {backend}")


__all__ = ["BaseCacheStore", "InMemoryCacheStore", "get_cache_store"]
