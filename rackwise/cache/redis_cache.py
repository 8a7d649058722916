"""Redis caching layer for compatibility verdicts and validation reports.

Two namespaces:
  rackwise:compat:{sha256(component_type + candidate + sorted components + strict types)}
  rackwise:report:{config_uuid or "anon"}:{sha256(sorted components + strict types)}

Report keys carry the configuration id so every cached report of one
server build can be dropped when that build changes. Verdicts are keyed
purely by content and simply age out.

When Redis is unreachable the engine runs uncached: every operation
returns None / False / 0 instead of raising.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

import redis.asyncio as aioredis

from rackwise.models.components import Component, ComponentType
from rackwise.models.configuration import Configuration

logger = logging.getLogger(__name__)

R = TypeVar("R")

# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────

CACHE_PREFIX = "rackwise:compat:"
REPORT_PREFIX = "rackwise:report:"
DEFAULT_TTL = int(os.getenv("RACKWISE_CACHE_TTL", "600"))  # 10 minutes
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


# ──────────────────────────────────────────────
# Cache Key Generation
# ──────────────────────────────────────────────


def _canonical_components(configuration: Configuration) -> List[Dict[str, Any]]:
    dumped = [c.model_dump(mode="json") for c in configuration.components]
    return sorted(dumped, key=lambda c: json.dumps(c, sort_keys=True))


def _strict_values(strict_types: Iterable[ComponentType]) -> List[str]:
    return sorted(ComponentType(t).value for t in strict_types)


def _digest(canonical: Dict[str, Any]) -> str:
    return hashlib.sha256(json.dumps(canonical, sort_keys=True).encode()).hexdigest()


def compatibility_cache_key(
    component_type: ComponentType,
    candidate: Component,
    configuration: Configuration,
    strict_types: Iterable[ComponentType] = (),
) -> str:
    """Deterministic key for one compatibility check.

    Components are sorted, so the order a build was assembled in does
    not change the key.
    """
    digest = _digest(
        {
            "component_type": ComponentType(component_type).value,
            "candidate": candidate.model_dump(mode="json"),
            "components": _canonical_components(configuration),
            "strict_types": _strict_values(strict_types),
        }
    )
    return f"{CACHE_PREFIX}{digest}"


def report_cache_prefix(config_uuid: Optional[str]) -> str:
    return f"{REPORT_PREFIX}{config_uuid or 'anon'}:"


def validation_cache_key(
    configuration: Configuration,
    strict_types: Iterable[ComponentType] = (),
) -> str:
    """Key for a whole-configuration report, grouped under the build's id."""
    digest = _digest(
        {
            "components": _canonical_components(configuration),
            "strict_types": _strict_values(strict_types),
        }
    )
    return f"{report_cache_prefix(configuration.config_uuid)}{digest}"


# ──────────────────────────────────────────────
# Redis Cache Client
# ──────────────────────────────────────────────


class ResultCache:
    """Redis-backed cache for engine results.

    Payloads are JSON strings. Hit and miss counters are kept per
    process and reported by ``stats()``.
    """

    def __init__(
        self,
        redis_url: str = REDIS_URL,
        ttl: int = DEFAULT_TTL,
    ) -> None:
        self.ttl = ttl
        self.hits = 0
        self.misses = 0
        self._redis = None
        self._redis_url = redis_url
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    async def connect(self) -> bool:
        """Connect to Redis. Returns True if successful."""

        async def _open() -> bool:
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
            )
            return bool(await self._redis.ping())

        self._available = True
        if not await self._guarded("connect", _open, False):
            self._available = False
            logger.warning("Redis unavailable at %s - caching disabled", self._redis_url)
            return False
        logger.info("Redis cache connected: %s", self._redis_url)
        return True

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        self._available = False

    async def _guarded(self, op: str, call: Callable[[], Awaitable[R]], fallback: R) -> R:
        if not self._available:
            return fallback
        try:
            return await call()
        except Exception as e:
            logger.warning("Cache %s failed: %s", op, e)
            return fallback

    # ── raw storage (overridden by InMemoryCache) ──

    async def _read(self, key: str) -> Optional[str]:
        return await self._redis.get(key)

    async def _write(self, key: str, value: str, ttl: int) -> bool:
        await self._redis.set(key, value, ex=ttl)
        return True

    async def _remove(self, keys: List[str]) -> int:
        return await self._redis.delete(*keys) if keys else 0

    async def _scan(self, pattern: str) -> List[str]:
        return [key async for key in self._redis.scan_iter(pattern)]

    # ── public API ──

    async def get(self, key: str) -> Optional[str]:
        """Cached payload, or None on miss or error."""
        data = await self._guarded("get", lambda: self._read(key), None)
        if data is None:
            self.misses += 1
        else:
            self.hits += 1
        logger.debug("Cache %s: %s", "HIT" if data is not None else "MISS", key)
        return data

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        ttl = ttl or self.ttl
        stored = await self._guarded("set", lambda: self._write(key, value, ttl), False)
        if stored:
            logger.debug("Cache SET: %s (TTL: %ds)", key, ttl)
        return stored

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cache entry %s", key)
            await self.delete(key)
            return None

    async def set_json(self, key: str, value: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        return await self.set(key, json.dumps(value, sort_keys=True), ttl)

    async def delete(self, key: str) -> bool:
        return await self._guarded("delete", lambda: self._remove([key]), None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns count deleted."""

        async def _delete() -> int:
            keys = await self._scan(pattern)
            await self._remove(keys)
            return len(keys)

        return await self._guarded("delete_pattern", _delete, 0)

    async def invalidate_configuration(self, config_uuid: Optional[str]) -> int:
        """Drop every cached report of one server build."""
        count = await self.delete_pattern(f"{report_cache_prefix(config_uuid)}*")
        logger.info("Invalidated %d cached report(s) for configuration %s", count, config_uuid or "anon")
        return count

    async def clear_all(self) -> int:
        """Clear every rackwise cache entry. Returns count deleted."""
        count = 0
        for prefix in (CACHE_PREFIX, REPORT_PREFIX):
            count += await self.delete_pattern(f"{prefix}*")
        logger.info("Cleared %d cache entries", count)
        return count

    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return round(self.hits / lookups, 3) if lookups else 0.0

    async def stats(self) -> dict:
        if not self._available:
            return {"available": False, "keys": 0}

        async def _count() -> Tuple[int, int]:
            verdicts = await self._scan(f"{CACHE_PREFIX}*")
            reports = await self._scan(f"{REPORT_PREFIX}*")
            return len(verdicts), len(reports)

        counts = await self._guarded("stats", _count, None)
        if counts is None:
            return {"available": False, "keys": 0}
        verdicts, reports = counts
        return {
            "available": True,
            "keys": verdicts + reports,
            "verdicts": verdicts,
            "reports": reports,
            "ttl": self.ttl,
            "hit_rate": self.hit_rate(),
        }


# ──────────────────────────────────────────────
# In-Memory Fallback Cache (for tests / no Redis)
# ──────────────────────────────────────────────


class InMemoryCache(ResultCache):
    """Dict-based cache for tests and single-process deployments.

    Expired entries are dropped lazily on access and on scans.
    """

    def __init__(self, ttl: int = DEFAULT_TTL) -> None:
        super().__init__(ttl=ttl)
        self._store: Dict[str, Tuple[str, float]] = {}
        self._available = True

    async def connect(self) -> bool:
        self._available = True
        return True

    async def disconnect(self) -> None:
        self._store.clear()
        self._available = False

    def _gone(self, key: str, now: float) -> bool:
        entry = self._store.get(key)
        if entry is not None and entry[1] <= now:
            del self._store[key]
            return True
        return entry is None

    async def _read(self, key: str) -> Optional[str]:
        if self._gone(key, time.monotonic()):
            return None
        return self._store[key][0]

    async def _write(self, key: str, value: str, ttl: int) -> bool:
        self._store[key] = (value, time.monotonic() + ttl)
        return True

    async def _remove(self, keys: List[str]) -> int:
        return sum(1 for key in keys if self._store.pop(key, None) is not None)

    async def _scan(self, pattern: str) -> List[str]:
        now = time.monotonic()
        return [key for key in list(self._store) if not self._gone(key, now) and fnmatchcase(key, pattern)]
