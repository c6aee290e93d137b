"""Health check — store reachability, zone cache state, inquiry queue."""

from fastapi import APIRouter, Depends

from ..dependencies import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
def health(services: Services = Depends(get_services)):
    db_ok, db_detail = services.store.ping()
    cache = services.zone_cache.status()
    return {
        "status": "ok" if db_ok and cache["loaded"] else "degraded",
        "database": {"ok": db_ok, "detail": db_detail},
        "zone_cache": cache,
        "inquiries": services.dispatcher.stats(),
    }
