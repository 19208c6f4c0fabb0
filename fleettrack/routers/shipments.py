from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from fleettrack.cache import QueryCache, cache_key
from fleettrack.core import config
from fleettrack.deps import get_cache, get_db
from fleettrack.domain.metrics import as_utc, shipment_metrics, utcnow
from fleettrack.schemas.shipment import (
    DeliveryConfirmation,
    ShipmentCreate,
    ShipmentFilters,
    ShipmentStatus,
    ShipmentUpdate,
    StatusChange,
)
from fleettrack.store import shipments

router = APIRouter(prefix="/shipments", tags=["shipments"])

NOT_FOUND = "Shipment not found"


def _detail(shipment: dict) -> dict:
    return {**shipment, **shipment_metrics(shipment, utcnow())}


@router.get("")
async def list_shipments(
    request: Request,
    filters: Annotated[ShipmentFilters, Query()],
    database=Depends(get_db),
    cache: QueryCache = Depends(get_cache),
):
    key = cache_key("shipments", request.query_params)
    cached = cache.get(key)
    if cached is not None:
        return cached

    result = await shipments.list_page(database, filters)
    cache.set(key, result, config.LIST_CACHE_TTL)
    return result


@router.post("", status_code=201)
async def create_shipment(body: ShipmentCreate, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    shipment = await shipments.create(database, body)
    cache.clear()
    return _detail(shipment)


@router.get("/stats/status")
async def shipment_stats(database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    key = cache_key("shipments:stats:status")
    cached = cache.get(key)
    if cached is not None:
        return cached

    stats = await shipments.get_stats(database)
    cache.set(key, stats, config.LIST_CACHE_TTL)
    return stats


@router.get("/search/{term}")
async def search_shipments(term: str, database=Depends(get_db)):
    return await shipments.search(database, term)


@router.get("/status/{status}")
async def shipments_by_status(status: ShipmentStatus, database=Depends(get_db)):
    return await shipments.by_status(database, status)


@router.get("/urgent")
async def urgent_shipments(database=Depends(get_db)):
    return await shipments.urgent(database)


@router.get("/delayed")
async def delayed_shipments(database=Depends(get_db)):
    return await shipments.delayed(database)


@router.get("/driver/{driver_id}")
async def shipments_by_driver(driver_id: str, database=Depends(get_db)):
    return await shipments.by_driver(database, driver_id)


@router.get("/range")
async def shipments_by_date_range(start: datetime, end: datetime, database=Depends(get_db)):
    if as_utc(start) > as_utc(end):
        raise HTTPException(status_code=400, detail="start must not be after end")
    return await shipments.by_date_range(database, start, end)


@router.get("/{shipment_id}")
async def get_shipment(shipment_id: str, database=Depends(get_db)):
    shipment = await shipments.get(database, shipment_id)
    if not shipment:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return _detail(shipment)


@router.put("/{shipment_id}")
async def update_shipment(
    shipment_id: str, body: ShipmentUpdate, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    shipment = await shipments.update(database, shipment_id, body)
    if not shipment:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    cache.clear()
    return _detail(shipment)


@router.delete("/{shipment_id}")
async def delete_shipment(shipment_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    if not await shipments.delete(database, shipment_id):
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    cache.clear()
    return {"success": True, "message": "Shipment deleted"}


# -----------------------------
# Lifecycle
# -----------------------------
@router.put("/{shipment_id}/status")
async def change_status(
    shipment_id: str, body: StatusChange, database=Depends(get_db), cache: QueryCache = Depends(get_cache)
):
    shipment = await shipments.update_status(database, shipment_id, body.status, body.notes)
    if not shipment:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    cache.clear()
    return _detail(shipment)


@router.put("/{shipment_id}/deliver")
async def deliver(
    shipment_id: str,
    body: Optional[DeliveryConfirmation] = None,
    database=Depends(get_db),
    cache: QueryCache = Depends(get_cache),
):
    shipment = await shipments.mark_delivered(database, shipment_id, body.actual_delivery_date if body else None)
    if not shipment:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    cache.clear()
    return _detail(shipment)
