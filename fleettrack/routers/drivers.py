from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from fleettrack.cache import QueryCache, cache_key
from fleettrack.core import config
from fleettrack.deps import get_cache, get_db
from fleettrack.domain.metrics import driver_metrics
from fleettrack.schemas.driver import (
    DeliveryRecord,
    DriverCreate,
    DriverFilters,
    DriverStatus,
    DriverUpdate,
    RatingChange,
    VehicleAssignment,
)
from fleettrack.store import drivers

router = APIRouter(prefix="/drivers", tags=["drivers"])

NOT_FOUND = "Driver not found"


def _found(driver: Optional[dict]) -> dict:
    if not driver:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return {**driver, **driver_metrics(driver)}


@router.get("")
async def list_drivers(
    request: Request,
    filters: Annotated[DriverFilters, Query()],
    database=Depends(get_db),
    cache: QueryCache = Depends(get_cache),
):
    key = cache_key("drivers", request.query_params)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = await drivers.list_page(database, filters)
    cache.set(key, result, config.LIST_CACHE_TTL)
    return result


@router.post("", status_code=201)
async def create_driver(body: DriverCreate, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    driver = await drivers.create(database, body)
    cache.clear()
    return _found(driver)


@router.get("/available")
async def available_drivers(database=Depends(get_db)):
    return await drivers.available(database)


@router.get("/stats/status")
async def driver_stats(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    key = cache_key("drivers:stats:status")
    cached = cache.get(key)
    if cached is not None:
        return cached

    stats = await drivers.get_stats(database)
    cache.set(key, stats, config.LIST_CACHE_TTL)
    return stats


@router.get("/status/{status}")
async def drivers_by_status(status: DriverStatus, database=Depends(get_db)):
    return await drivers.by_status(database, status)


@router.get("/top-rated")
async def top_rated_drivers(limit: int = Query(10, ge=1, le=100), database=Depends(get_db)):
    return await drivers.top_rated(database, limit)


@router.get("/experienced")
async def experienced_drivers(limit: int = Query(10, ge=1, le=100), database=Depends(get_db)):
    return await drivers.most_experienced(database, limit)


@router.get("/search/{term}")
async def search_drivers(term: str, database=Depends(get_db)):
    return await drivers.search(database, term)


@router.get("/{driver_id}")
async def get_driver(driver_id: str, database=Depends(get_db)):
    return _found(await drivers.get(database, driver_id))


@router.put("/{driver_id}")
async def update_driver(
    driver_id: str, body: DriverUpdate, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    driver = _found(await drivers.update(database, driver_id, body))
    cache.clear()
    return driver


@router.delete("/{driver_id}")
async def delete_driver(driver_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    if not await drivers.delete(database, driver_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    cache.clear()
    return {"success": True, "message": "Driver deleted"}


# -----------------------------
# Lifecycle
# -----------------------------
@router.put("/{driver_id}/assign-vehicle")
async def assign_vehicle(
    driver_id: str, body: VehicleAssignment, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    driver = _found(await drivers.assign_vehicle(database, driver_id, body.vehicle_id))
    cache.clear()
    return driver


@router.put("/{driver_id}/release")
async def release_driver(driver_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    driver = _found(await drivers.release(database, driver_id))
    cache.clear()
    return driver


@router.put("/{driver_id}/off-duty")
async def mark_off_duty(driver_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    driver = _found(await drivers.mark_off_duty(database, driver_id))
    cache.clear()
    return driver


@router.put("/{driver_id}/suspend")
async def suspend_driver(driver_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    driver = _found(await drivers.suspend(database, driver_id))
    cache.clear()
    return driver


@router.put("/{driver_id}/rating")
async def update_rating(
    driver_id: str, body: RatingChange, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    driver = _found(await drivers.update_rating(database, driver_id, body.rating))
    cache.clear()
    return driver


@router.put("/{driver_id}/record-delivery")
async def record_delivery(
    driver_id: str, body: DeliveryRecord, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    driver = _found(await drivers.record_delivery(database, driver_id, body.on_time))
    cache.clear()
    return driver
