from __future__ import annotations

import threading
from typing import Dict, List, Optional

from redis.asyncio import Redis

from catalog_filters.core.logging import get_logger

logger = get_logger(__name__)


class InMemoryKeyValueStore:
    """Process-local key-value store. Default backend and the one used in tests."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            self._items[key] = value

    async def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    async def list_keys(self) -> List[str]:
        with self._lock:
            return list(self._items.keys())


class RedisKeyValueStore:
    """Durable store on redis. Keys are namespaced so ``list_keys`` only sees our own."""

    def __init__(self, url: str, *, namespace: str = "", client: Optional[Redis] = None) -> None:
        self.url = str(url or "").strip()
        self.namespace = str(namespace or "")
        self._client: Optional[Redis] = client

    def _ensure_client(self) -> Redis:
        if self._client is None:
            if not self.url:
                raise RuntimeError("CACHE_REDIS_URL is not configured")
            self._client = Redis.from_url(self.url, decode_responses=True)
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self._ensure_client().get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        # Native expiry only reclaims entries nobody reads again; reads still check the envelope.
        ex = max(1, int(ttl_seconds)) if ttl_seconds is not None else None
        await self._ensure_client().set(self._key(key), value, ex=ex)

    async def remove(self, key: str) -> None:
        await self._ensure_client().delete(self._key(key))

    async def list_keys(self) -> List[str]:
        client = self._ensure_client()
        keys: List[str] = []
        async for raw in client.scan_iter(match=f"{self.namespace}*"):
            keys.append(str(raw)[len(self.namespace):])
        return keys

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
