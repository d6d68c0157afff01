import time

from fastapi import APIRouter, Depends

from app.services.container import Services, get_services

router = APIRouter(prefix="/ops", tags=["ops"])

# Store startup time for uptime calculation
startup_time = time.time()


@router.get("/store-health")
async def store_health(services: Services = Depends(get_services)):
    """Round-trip a probe key through the key-value store."""
    try:
        await services.store.set("ops:probe", {"ts": time.time()}, 5)
        ok = await services.store.get("ops:probe") is not None
        return {"store_ok": ok, "driver": services.settings.STORE_DRIVER}
    except Exception as e:
        return {"store_ok": False, "error": str(e)}


@router.get("/status")
async def status():
    return {
        "status": "healthy",
        "uptime_seconds": round(time.time() - startup_time, 2),
        "timestamp": time.time(),
    }
