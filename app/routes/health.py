"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from app.config import settings
from app.routes.dependencies import get_store
from app.services.entity_store import EntityStore

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "inbox-priority-engine"}


@router.get("/readyz")
async def readyz(store: EntityStore = Depends(get_store)):
    """
    Readiness check: the store is wired up and the event bus is accepting subscribers.
    """
    t0 = time.time()
    stats = store.stats()

    checks = {
        "store": {
            "ok": True,
            "latency_ms": round((time.time() - t0) * 1000, 1),
            **stats,
        },
        "event_bus": {
            "ok": True,
            "subscribers": store.events.subscriber_count,
        },
        "configuration": {
            "ok": True,
            "environment": settings.environment,
            "seed_demo_data": settings.should_seed_demo_data(),
        },
    }
    overall_ok = all(check["ok"] for check in checks.values())

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
