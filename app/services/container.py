"""
Composition root: everything stateful is built once per app and shared by reference.
"""

import logging
import time
from typing import Callable, Optional

from fastapi import Request

from app.config import Settings, catalog_path
from app.services.catalog import CatalogRepository
from app.services.notifier import Notifier, build_notifier
from app.services.otp import OTPManager, OTPPolicy
from app.services.rate_limit import RateLimiter
from app.services.store import KeyValueStore, build_store
from app.services.tokens import AdminTokenService, QuoteTokenService

log = logging.getLogger(__name__)


class Services:
    def __init__(
        self,
        cfg: Settings,
        store: KeyValueStore,
        notifier: Notifier,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = cfg
        self.clock = clock
        self.store = store
        self.notifier = notifier
        self.rate_limiter = RateLimiter(
            store,
            clock,
            ip_limit=cfg.IP_RATE_LIMIT,
            ip_window_seconds=cfg.IP_RATE_WINDOW_SECONDS,
        )
        self.otp = OTPManager(store, self.rate_limiter, notifier, clock, OTPPolicy.from_settings(cfg))
        self.quote_tokens = QuoteTokenService(cfg.quote_secret(), cfg.QUOTE_TOKEN_TTL_SECONDS, clock)
        self.admin_tokens = AdminTokenService(cfg.admin_secret(), cfg.ADMIN_TOKEN_TTL_SECONDS, clock)
        self.catalog = CatalogRepository(store, catalog_path(cfg), cfg.CATALOG_CACHE_TTL_SECONDS, clock)

    async def close(self) -> None:
        try:
            await self.notifier.close()
        finally:
            await self.store.close()


def build_services(
    cfg: Settings,
    clock: Callable[[], float] = time.time,
    store: Optional[KeyValueStore] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    return Services(
        cfg,
        store if store is not None else build_store(cfg, clock),
        notifier if notifier is not None else build_notifier(cfg),
        clock,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
