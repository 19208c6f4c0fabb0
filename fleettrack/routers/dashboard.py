from fastapi import APIRouter, Depends, Query

from fleettrack.cache import QueryCache, cache_key
from fleettrack.core import config
from fleettrack.deps import get_cache, get_db
from fleettrack.services import dashboard
from fleettrack.store import drivers, shipments, vehicles

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


async def _cached(cache: QueryCache, key: str, compute):
    cached = cache.get(key)
    if cached is not None:
        return cached
    payload = await compute()
    cache.set(key, payload, config.DASHBOARD_CACHE_TTL)
    return payload


@router.get("/stats")
async def stats(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    return await _cached(cache, "dashboard:stats", lambda: dashboard.compose_stats(database))


@router.get("/recent-shipments")
async def recent_shipments(
    limit: int = Query(5, ge=1, le=100), database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    return await _cached(cache, f"dashboard:recent-shipments:{limit}", lambda: shipments.recent(database, limit))


@router.get("/performance")
async def performance(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    return await _cached(cache, "dashboard:performance", lambda: dashboard.performance(database))


@router.get("/urgent-shipments")
async def urgent_shipments(database=Depends(get_db)):
    return await shipments.urgent(database)


@router.get("/delayed-shipments")
async def delayed_shipments(database=Depends(get_db)):
    return await shipments.delayed(database)


@router.get("/vehicles-maintenance")
async def vehicles_maintenance(database=Depends(get_db)):
    return await vehicles.needing_maintenance(database)


@router.get("/top-drivers")
async def top_drivers(limit: int = Query(5, ge=1, le=100), database=Depends(get_db)):
    return await drivers.top_rated(database, limit)


@router.get("/available-resources")
async def available_resources(database=Depends(get_db)):
    return await dashboard.available_resources(database)


@router.get("/shipments-by-status")
async def shipments_by_status(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    return await _cached(cache, cache_key("dashboard:shipments-by-status"), lambda: dashboard.shipments_by_status(database))


@router.get("/vehicles-by-type")
async def vehicles_by_type(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    return await _cached(cache, cache_key("dashboard:vehicles-by-type"), lambda: dashboard.vehicles_by_type(database))


@router.get("/drivers-by-experience")
async def drivers_by_experience(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    return await _cached(
        cache, cache_key("dashboard:drivers-by-experience"), lambda: dashboard.drivers_by_experience(database)
    )
