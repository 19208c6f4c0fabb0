import logging
from datetime import timedelta
from typing import List, Optional

from fleettrack.domain.metrics import MAINTENANCE_INTERVAL_MONTHS, MAINTENANCE_WARNING_DAYS, add_months, utcnow
from fleettrack.schemas.vehicle import VEHICLE_TYPES, VehicleCreate, VehicleFilters, VehicleUpdate
from fleettrack.store import base

logger = logging.getLogger(__name__)

DRIVER_SUMMARY = ("name", "phone", "email")


async def _with_drivers(database, docs: List[dict]) -> List[dict]:
    return await base.populate(docs, "driver", database.drivers, DRIVER_SUMMARY)


async def create(database, payload: VehicleCreate) -> dict:
    doc = payload.model_dump()
    doc["plate"] = doc["plate"].strip()
    if doc.get("driver"):
        doc["driver"] = base.reference_id(doc["driver"], "driver")
    else:
        doc.pop("driver", None)

    vehicle = await base.insert(database.vehicles, doc, natural_key="plate")
    logger.info("Vehicle %s created (%s)", vehicle["id"], vehicle["plate"])
    return vehicle


async def get(database, vehicle_id) -> Optional[dict]:
    vehicle = await base.find(database.vehicles, vehicle_id)
    if vehicle:
        await _with_drivers(database, [vehicle])
    return vehicle


async def get_raw(database, vehicle_id) -> Optional[dict]:
    return await base.find(database.vehicles, vehicle_id)


async def update(database, vehicle_id, payload: VehicleUpdate) -> Optional[dict]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    unset = []
    if "status" in changes and changes["status"] != "in-use":
        unset.append("driver")
    vehicle = await base.modify(database.vehicles, vehicle_id, set_=changes, unset=unset, natural_key="plate")
    if vehicle:
        await _with_drivers(database, [vehicle])
    return vehicle


async def delete(database, vehicle_id) -> bool:
    deleted = await base.remove(database.vehicles, vehicle_id)
    if deleted:
        logger.info("Vehicle %s deleted", vehicle_id)
    return deleted


async def list_page(database, filters: VehicleFilters) -> dict:
    query = {}
    if filters.status:
        query["status"] = filters.status
    if filters.type:
        query["type"] = filters.type

    result = await base.page(database.vehicles, query, base.sort_spec("created_at", "desc"), filters.page, filters.limit)
    await _with_drivers(database, result["items"])
    return result


async def available(database) -> List[dict]:
    return await _with_drivers(database, await base.find_many(database.vehicles, {"status": "available"}))


async def by_type(database, vehicle_type: str) -> List[dict]:
    return await _with_drivers(database, await base.find_many(database.vehicles, {"type": vehicle_type}))


async def needing_maintenance(database, now=None) -> List[dict]:
    horizon = (now or utcnow()) + timedelta(days=MAINTENANCE_WARNING_DAYS)
    docs = await base.find_many(
        database.vehicles,
        {"next_maintenance": {"$lte": base.bson_datetime(horizon)}},
        sort=base.sort_spec("next_maintenance", "asc"),
    )
    return await _with_drivers(database, docs)


async def by_capacity(database, min_capacity: float, max_capacity: Optional[float] = None) -> List[dict]:
    capacity = {"$gte": min_capacity}
    if max_capacity:
        capacity["$lte"] = max_capacity
    return await _with_drivers(database, await base.find_many(database.vehicles, {"capacity": capacity}))


# -----------------------------
# Lifecycle
# -----------------------------
async def _transition(database, vehicle_id, label: str, **kwargs) -> Optional[dict]:
    vehicle = await base.modify(database.vehicles, vehicle_id, **kwargs)
    if vehicle:
        logger.info("Vehicle %s: %s -> %s", vehicle_id, label, vehicle["status"])
    return vehicle


async def assign_driver(database, vehicle_id, driver_id, now=None) -> Optional[dict]:
    driver_oid = base.reference_id(driver_id, "driver_id")
    return await _transition(database, vehicle_id, "assign_driver", set_={"status": "in-use", "driver": driver_oid}, now=now)


async def release(database, vehicle_id, now=None) -> Optional[dict]:
    return await _transition(database, vehicle_id, "release", set_={"status": "available"}, unset=["driver"], now=now)


async def send_to_maintenance(database, vehicle_id, now=None) -> Optional[dict]:
    return await _transition(database, vehicle_id, "maintenance", set_={"status": "maintenance"}, unset=["driver"], now=now)


async def mark_offline(database, vehicle_id, now=None) -> Optional[dict]:
    return await _transition(database, vehicle_id, "offline", set_={"status": "offline"}, unset=["driver"], now=now)


async def update_maintenance(database, vehicle_id, now=None) -> Optional[dict]:
    now = now or utcnow()
    return await _transition(
        database, vehicle_id, "update_maintenance",
        set_={
            "last_maintenance": now,
            "next_maintenance": add_months(now, MAINTENANCE_INTERVAL_MONTHS),
            "status": "available",
        },
        now=now,
    )


async def restore(database, vehicle_id, previous: dict) -> Optional[dict]:
    set_ = {"status": previous["status"]}
    unset = []
    if previous.get("driver"):
        set_["driver"] = base.reference_id(previous["driver"], "driver")
    else:
        unset.append("driver")
    return await base.modify(database.vehicles, vehicle_id, set_=set_, unset=unset)


# -----------------------------
# Statistics
# -----------------------------
STATUS_NAMES = {
    "available": "available",
    "in_use": "in-use",
    "maintenance": "maintenance",
    "offline": "offline",
}

EMPTY_STATS = {"total_vehicles": 0, **{name: 0 for name in STATUS_NAMES}}


async def get_stats(database) -> dict:
    row = await base.aggregate_one(database.vehicles, [
        {"$group": {"_id": None, "total_vehicles": {"$sum": 1}, **base.status_counts("status", STATUS_NAMES)}}
    ])
    return {**EMPTY_STATS, **(row or {})}


async def type_distribution(database) -> dict:
    rows = await database.vehicles.aggregate([
        {"$group": {"_id": "$type", "count": {"$sum": 1}}}
    ]).to_list(length=None)
    dist = {t: 0 for t in VEHICLE_TYPES}
    for row in rows:
        if row["_id"] in dist:
            dist[row["_id"]] = row["count"]
    dist["total"] = sum(dist[t] for t in VEHICLE_TYPES)
    return dist
