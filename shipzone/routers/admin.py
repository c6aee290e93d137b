"""Internal hooks for the admin tool that owns warehouses and zones."""

from fastapi import APIRouter, Depends
from loguru import logger

from ..cache.zone_cache import ZoneCache
from ..dependencies import get_zone_cache, require_admin_key

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.post("/internal/zone-cache/invalidate")
def invalidate_zone_cache(cache: ZoneCache = Depends(get_zone_cache)):
    """Called after zones or warehouses change. Reload starts in the background."""
    cache.invalidate()
    reload_started = cache.ensure_fresh() is not None
    logger.info("Zone cache invalidated by admin hook")
    return {
        "ok": True,
        "generation": cache.status()["generation"],
        "reload_started": reload_started,
    }
