"""
Store-backed rate limiting: per-phone resend cooldown and per-IP request counts.

increment_with_ttl refreshes the window on every hit, so the counter measures
hits since the last quiet period of window_seconds rather than a fixed rolling
window. Under steady traffic the counter never resets.
"""

import logging
import math
import time
from typing import Callable

from fastapi import Request

from app.schemas.otp import CooldownResult, FailureKind, RequestResult
from app.services.store import KeyValueStore, ip_key

log = logging.getLogger(__name__)


class RateLimiter:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        ip_limit: int = 30,
        ip_window_seconds: int = 3600,
    ):
        self.store = store
        self.clock = clock
        self.ip_limit = ip_limit
        self.ip_window_seconds = ip_window_seconds

    async def enforce_cooldown(self, key: str, window_seconds: float) -> CooldownResult:
        now = self.clock()
        last = await self.store.get(key)
        if isinstance(last, dict) and isinstance(last.get("ts"), (int, float)):
            elapsed = now - last["ts"]
            if elapsed < window_seconds:
                wait_ms = int(math.ceil((window_seconds - elapsed) * 1000))
                return CooldownResult(ok=False, wait_ms=wait_ms)
        await self.store.set(key, {"ts": now}, window_seconds)
        return CooldownResult(ok=True, wait_ms=0)

    async def increment_with_ttl(self, key: str, window_seconds: float) -> int:
        current = await self.store.get(key)
        count = (current or {}).get("count", 0) + 1
        await self.store.set(key, {"count": count}, window_seconds)
        return count

    async def check_ip(self, ip: str) -> RequestResult:
        count = await self.increment_with_ttl(ip_key(ip), self.ip_window_seconds)
        if count > self.ip_limit:
            log.warning("IP rate limit hit: ip=%s count=%s", ip, count)
            return RequestResult.fail(
                FailureKind.RATE_LIMITED,
                "Too many requests. Please try again later.",
                retry_after=self.ip_window_seconds,
            )
        return RequestResult(ok=True)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real = request.headers.get("x-real-ip", "").strip()
    if real:
        return real
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
