from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from fleettrack.cache import QueryCache, cache_key
from fleettrack.core import config
from fleettrack.deps import get_cache, get_db
from fleettrack.domain.metrics import utcnow, vehicle_metrics
from fleettrack.schemas.vehicle import DriverAssignment, VehicleCreate, VehicleFilters, VehicleType, VehicleUpdate
from fleettrack.store import vehicles

router = APIRouter(prefix="/vehicles", tags=["vehicles"])

NOT_FOUND = "Vehicle not found"


def _detail(vehicle: dict) -> dict:
    return {**vehicle, **vehicle_metrics(vehicle, utcnow())}


def _found(vehicle: Optional[dict]) -> dict:
    if not vehicle:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return _detail(vehicle)


@router.get("")
async def list_vehicles(
    request: Request,
    filters: Annotated[VehicleFilters, Query()],
    database=Depends(get_db),
    cache: QueryCache = Depends(get_cache),
):
    key = cache_key("vehicles", request.query_params)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = await vehicles.list_page(database, filters)
    cache.set(key, result, config.LIST_CACHE_TTL)
    return result


@router.post("", status_code=201)
async def create_vehicle(body: VehicleCreate, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    vehicle = await vehicles.create(database, body)
    cache.clear()
    return _detail(vehicle)


@router.get("/available")
async def available_vehicles(database=Depends(get_db)):
    return await vehicles.available(database)


@router.get("/stats/status")
async def vehicle_stats(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    key = cache_key("vehicles:stats:status")
    cached = cache.get(key)
    if cached is not None:
        return cached

    stats = await vehicles.get_stats(database)
    cache.set(key, stats, config.LIST_CACHE_TTL)
    return stats


@router.get("/type/{vehicle_type}")
async def vehicles_by_type(vehicle_type: VehicleType, database=Depends(get_db)):
    return await vehicles.by_type(database, vehicle_type)


@router.get("/maintenance")
async def vehicles_needing_maintenance(database=Depends(get_db)):
    return await vehicles.needing_maintenance(database)


@router.get("/capacity/{min_capacity}")
@router.get("/capacity/{min_capacity}/{max_capacity}")
async def vehicles_by_capacity(min_capacity: float, max_capacity: Optional[float] = None, database=Depends(get_db)):
    return await vehicles.by_capacity(database, min_capacity, max_capacity)


@router.get("/{vehicle_id}")
async def get_vehicle(vehicle_id: str, database=Depends(get_db)):
    return _found(await vehicles.get(database, vehicle_id))


@router.put("/{vehicle_id}")
async def update_vehicle(
    vehicle_id: str, body: VehicleUpdate, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    vehicle = _found(await vehicles.update(database, vehicle_id, body))
    cache.clear()
    return vehicle


@router.delete("/{vehicle_id}")
async def delete_vehicle(vehicle_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    if not await vehicles.delete(database, vehicle_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    cache.clear()
    return {"success": True, "message": "Vehicle deleted"}


# -----------------------------
# Lifecycle
# -----------------------------
@router.put("/{vehicle_id}/assign")
async def assign_driver(
    vehicle_id: str, body: DriverAssignment, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    vehicle = _found(await vehicles.assign_driver(database, vehicle_id, body.driver_id))
    cache.clear()
    return vehicle


@router.put("/{vehicle_id}/release")
async def release_vehicle(vehicle_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    vehicle = _found(await vehicles.release(database, vehicle_id))
    cache.clear()
    return vehicle


@router.put("/{vehicle_id}/maintenance")
async def send_to_maintenance(vehicle_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    vehicle = _found(await vehicles.send_to_maintenance(database, vehicle_id))
    cache.clear()
    return vehicle


@router.put("/{vehicle_id}/offline")
async def mark_offline(vehicle_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    vehicle = _found(await vehicles.mark_offline(database, vehicle_id))
    cache.clear()
    return vehicle


@router.put("/{vehicle_id}/update-maintenance")
async def update_maintenance(vehicle_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    vehicle = _found(await vehicles.update_maintenance(database, vehicle_id))
    cache.clear()
    return vehicle
