"""
Health check endpoints with storage and expiry scheduler monitoring.
"""

import time

from fastapi import APIRouter, Request

from barberflow.config import settings

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "barberflow"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness check covering storage and the expiry scheduler.
    """
    checks = {}
    overall_ok = True
    runtime = getattr(request.app.state, "negotiation", None)

    if runtime is None:
        return {
            "overall_ok": False,
            "checks": {"runtime": {"ok": False, "error": "Negotiation runtime not initialized"}},
            "timestamp": time.time(),
        }

    # 1) Storage health check
    t0 = time.time()
    try:
        storage_ok = await runtime.ping_storage()
        checks["storage"] = {
            "ok": bool(storage_ok),
            "backend": "redis" if settings.uses_redis() else "memory",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and bool(storage_ok)
    except Exception as e:
        checks["storage"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Expiry scheduler
    scheduler_health = runtime.scheduler.health_check()
    checks["expiry_scheduler"] = {
        "ok": scheduler_health["healthy"],
        "active_timers": scheduler_health["active_timers"],
        "last_run_time": scheduler_health["last_run_time"],
    }
    if "warning" in scheduler_health:
        checks["expiry_scheduler"]["warning"] = scheduler_health["warning"]
    overall_ok = overall_ok and scheduler_health["healthy"]

    checks["configuration"] = {"ok": True, "environment": settings.environment}

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
