"""
Key-value store used for OTP records, rate-limit counters and catalog data.

Backends are chosen once at startup via build_store(); callers only see
the KeyValueStore interface.
"""

import asyncio
import json
import logging
import math
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
from redis.exceptions import LockError, LockNotOwnedError

from app.config import Settings

log = logging.getLogger(__name__)

Clock = Callable[[], float]


def otp_key(phone: str) -> str:
    return f"otp:{phone}"


def cooldown_key(phone: str) -> str:
    return f"cd:phone:{phone}"


def ip_key(ip: str) -> str:
    return f"rl:ip:{ip}"


class KeyValueStore(ABC):
    """get/set-with-ttl/delete; missing keys are never an error."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Store a JSON-serialisable value for ttl seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def lock(self, key: str):
        """Async context manager giving exclusive access to key; raises LockTimeout when it cannot."""

    async def close(self) -> None:
        return None


class LockTimeout(Exception):
    """Exclusive access to a key could not be obtained in time."""


class MemoryStore(KeyValueStore):
    SWEEP_INTERVAL = 30.0

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._next_sweep = 0.0

    async def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        # stored as JSON so callers never share mutable state with the store
        self._data[key] = (json.dumps(value), now + ttl)

    def _sweep(self, now: float) -> None:
        # keys nobody reads again (cooldown markers, ip counters) only go away here
        for k in [k for k, (_, exp) in self._data.items() if exp <= now]:
            del self._data[k]
        self._next_sweep = now + self.SWEEP_INTERVAL

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lk = self._locks.get(key)
        if lk is None:
            lk = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lk:
                yield
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, exp in self._data.values() if exp > now)


class RedisStore(KeyValueStore):
    LOCK_TIMEOUT = 5.0

    def __init__(self, client: "aioredis.Redis"):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def set(self, key: str, value: Any, ttl: float) -> None:
        px = max(1, int(math.ceil(ttl * 1000)))
        await self._client.set(key, json.dumps(value), px=px)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lk = self._client.lock(f"lock:{key}", timeout=self.LOCK_TIMEOUT, blocking_timeout=self.LOCK_TIMEOUT)
        try:
            acquired = await lk.acquire()
        except LockError as e:
            raise LockTimeout(key) from e
        if not acquired:
            raise LockTimeout(key)
        try:
            yield
        finally:
            try:
                await lk.release()
            except LockNotOwnedError:
                log.warning("Lease on %s ran out before release", key)

    async def close(self) -> None:
        await self._client.aclose()


def build_store(cfg: Settings, clock: Clock = time.time) -> KeyValueStore:
    driver = (cfg.STORE_DRIVER or "memory").strip().lower()
    if driver == "redis":
        log.info("Key-value store: redis (%s)", cfg.REDIS_URL.split("@")[-1])
        return RedisStore.from_url(cfg.REDIS_URL)
    if driver != "memory":
        raise ValueError(f"Unknown STORE_DRIVER '{cfg.STORE_DRIVER}'")
    if not cfg.is_development:
        log.warning("In-memory store in %s; state is per-process and lost on restart", cfg.env)
    else:
        log.info("Key-value store: memory")
    return MemoryStore(clock)
