from fastapi import APIRouter
import logging


def build_router() -> APIRouter:
    router = APIRouter()
    log = logging.getLogger("routers")

    from .otp import router as otp_router
    router.include_router(otp_router)
    log.info("Loaded router: otp")

    from .quote import router as quote_router
    router.include_router(quote_router)
    log.info("Loaded router: quote")

    from .admin import router as admin_router
    router.include_router(admin_router)
    log.info("Loaded router: admin")

    from .health import router as health_router
    router.include_router(health_router)
    log.info("Loaded router: health")

    return router


# Export module-level router so app.main can import it
router = build_router()
