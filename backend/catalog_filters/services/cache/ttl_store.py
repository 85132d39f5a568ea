from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from catalog_filters.core.exceptions import CacheStoreFailure
from catalog_filters.core.logging import get_logger
from catalog_filters.services.contracts import KeyValueStore

logger = get_logger(__name__)

# Extra lifetime given to the store's native expiry beyond the envelope expiry.
STORE_EXPIRY_GRACE_SECONDS = 60


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class CacheEntryStatus:
    exists: bool
    age_seconds: Optional[int] = None


class TTLCacheStore:
    """Expiring JSON cache over a durable key-value store.

    Expired entries are evicted when read, never swept. Read and write failures of
    the underlying store are logged and behave as a miss / no-op; prefix eviction
    raises ``CacheStoreFailure`` so the caller decides how to degrade.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        default_ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.default_ttl_seconds = max(0.0, float(default_ttl_seconds))
        self._clock = clock
        self.hits = 0
        self.misses = 0

    async def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self.store.get(key)
        except Exception as exc:
            raise CacheStoreFailure("get", key, str(exc)) from exc
        if raw is None:
            return None
        try:
            envelope = json.loads(raw)
            return CacheEntry(
                key=key,
                payload=envelope["data"],
                created_at=float(envelope["timestamp"]),
                expires_at=float(envelope["expiry"]),
            )
        except (ValueError, TypeError, KeyError):
            logger.warning("dropping corrupt cache entry key=%s", key)
            await self._remove_quietly(key)
            return None

    async def _remove_quietly(self, key: str) -> None:
        try:
            await self.store.remove(key)
        except Exception as exc:
            logger.warning(
                "cache remove failed",
                extra={"event": "cache_store_failure", "operation": "remove", "key": key, "error": str(exc)},
            )

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        try:
            entry = await self._read(key)
        except CacheStoreFailure as exc:
            logger.warning(
                "cache read failed; treating as miss",
                extra={"event": "cache_store_failure", "operation": "get", "key": key, "error": str(exc)},
            )
            self.misses += 1
            return None
        if entry is None:
            self.misses += 1
            return None
        if entry.is_expired(self._clock()):
            await self._remove_quietly(key)
            self.misses += 1
            return None
        self.hits += 1
        return entry

    async def get(self, key: str) -> Optional[Any]:
        entry = await self.get_entry(key)
        return None if entry is None else entry.payload

    async def set(self, key: str, payload: Any, ttl_seconds: Optional[float] = None) -> bool:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(0.0, float(ttl_seconds))
        now = self._clock()
        envelope = {"data": payload, "timestamp": now, "expiry": now + ttl}
        try:
            await self.store.set(
                key,
                json.dumps(envelope, ensure_ascii=True, default=str),
                ttl + STORE_EXPIRY_GRACE_SECONDS,
            )
            return True
        except Exception as exc:
            logger.warning(
                "cache write failed; continuing without cache",
                extra={"event": "cache_store_failure", "operation": "set", "key": key, "error": str(exc)},
            )
            return False

    async def remove(self, key: str) -> None:
        await self._remove_quietly(key)

    async def evict_by_prefix(self, prefix: str) -> int:
        if not prefix:
            raise ValueError("prefix must not be empty")
        try:
            keys = await self.store.list_keys()
        except Exception as exc:
            raise CacheStoreFailure("list_keys", prefix, str(exc)) from exc
        evicted = 0
        failed: List[str] = []
        for key in keys:
            if not key.startswith(prefix):
                continue
            try:
                await self.store.remove(key)
            except Exception as exc:
                failed.append(key)
                logger.warning(
                    "cache remove failed during prefix eviction",
                    extra={"event": "cache_store_failure", "operation": "remove", "key": key, "error": str(exc)},
                )
                continue
            evicted += 1
        if failed:
            raise CacheStoreFailure(
                "remove", prefix, f"{len(failed)} key(s) not removed: {', '.join(failed)}", evicted=evicted
            )
        return evicted

    async def age_seconds(self, key: str) -> Optional[int]:
        try:
            entry = await self._read(key)
        except CacheStoreFailure as exc:
            logger.warning("cache age lookup failed: %s", exc)
            return None
        if entry is None:
            return None
        return max(0, int(self._clock() - entry.created_at))

    async def status(self, keys: Iterable[str]) -> Dict[str, CacheEntryStatus]:
        out: Dict[str, CacheEntryStatus] = {}
        for key in keys:
            age = await self.age_seconds(key)
            out[key] = CacheEntryStatus(exists=age is not None, age_seconds=age)
        return out

    def stats(self) -> Dict[str, Any]:
        total = int(self.hits + self.misses)
        hit_rate = float(self.hits / total) if total > 0 else 0.0
        return {
            "hits": int(self.hits),
            "misses": int(self.misses),
            "hit_rate": round(hit_rate, 4),
        }
