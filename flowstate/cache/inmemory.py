"""In-memory cache store for tests and single-process use."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

from .base import BaseCacheStore


class InMemoryCacheStore(BaseCacheStore):
    """Dictionary-backed store honouring TTLs lazily on read.

    Data is not persisted across process restarts.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        """Keys currently held, including ones that expired but were not read."""
        return list(self._entries)
