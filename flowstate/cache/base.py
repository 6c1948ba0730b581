"""Base key-value store interface used by the cache repository."""

from __future__ import annotations

import abc
from typing import Optional


class BaseCacheStore(metaclass=abc.ABCMeta):
    """Abstract string key-value store with optional per-key TTL."""

    async def connect(self) -> None:
        """Open connection to the store (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the store (no-op by default)."""
        pass

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored at ``key`` or ``None``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store ``value`` at ``key``, expiring after ``ttl`` seconds if given."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        raise NotImplementedError
