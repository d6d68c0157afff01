# Top imports
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

import sentry_sdk
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import Settings, settings
from app.core.errors import error_response
from app.core.middleware import ErrorEnvelopeMiddleware, SecurityHeadersMiddleware
from app.core.rate_limit import limiter
from app.schemas.otp import FailureKind
from app.services.container import build_services
from app.services.metrics import metrics_endpoint, metrics_middleware
from app.services.notifier import Notifier
from app.services.store import KeyValueStore

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

log = logging.getLogger(__name__)


def create_app(
    cfg: Optional[Settings] = None,
    clock: Callable[[], float] = time.time,
    store: Optional[KeyValueStore] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    cfg = cfg or settings
    # Secret guard for production deployments
    cfg.check_secrets()

    if cfg.SENTRY_DSN:
        sentry_sdk.init(dsn=cfg.SENTRY_DSN, traces_sample_rate=0.1, environment=cfg.env)

    services = build_services(cfg, clock=clock, store=store, notifier=notifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Starting repair quote service (env=%s)", cfg.env)
        try:
            await services.catalog.seed()
        except Exception as e:
            log.error("Catalog seed failed: %s", e)
            raise
        yield
        log.info("Shutting down repair quote service...")
        await services.close()

    app = FastAPI(
        title="Repair Quote API",
        description="Phone-verified repair price quotes with WhatsApp hand-off",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.settings = cfg

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
        return error_response(400, f"Invalid {field}: {first.get('msg', 'bad value')}", FailureKind.VALIDATION)

    from app.routers import router
    app.include_router(router)

    # Middleware setup
    app.add_middleware(ErrorEnvelopeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, production=cfg.env == "production")
    metrics_middleware(app, cfg.METRICS_ENABLED)

    @app.get("/metrics")
    async def prometheus_metrics():
        return await metrics_endpoint(cfg.METRICS_ENABLED)

    # Universal health endpoint (always present)
    @app.get("/health")
    async def health():
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.is_development)
