import logging
from typing import List, Optional

from fleettrack.domain.metrics import on_time_delivery_rate
from fleettrack.schemas.driver import DriverCreate, DriverFilters, DriverUpdate
from fleettrack.store import base

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "email", "license")
VEHICLE_SUMMARY = ("plate", "type", "capacity")


async def _with_vehicles(database, docs: List[dict]) -> List[dict]:
    return await base.populate(docs, "current_vehicle", database.vehicles, VEHICLE_SUMMARY)


async def create(database, payload: DriverCreate) -> dict:
    doc = payload.model_dump()
    if doc.get("current_vehicle"):
        doc["current_vehicle"] = base.reference_id(doc["current_vehicle"], "current_vehicle")
    else:
        doc.pop("current_vehicle", None)

    # license and email are both unique; the index name tells which one clashed
    driver = await base.insert(database.drivers, doc, natural_key="license")
    logger.info("Driver %s created (%s)", driver["id"], driver["license"])
    return driver


async def get(database, driver_id) -> Optional[dict]:
    driver = await base.find(database.drivers, driver_id)
    if driver:
        await _with_vehicles(database, [driver])
    return driver


async def get_raw(database, driver_id) -> Optional[dict]:
    return await base.find(database.drivers, driver_id)


async def update(database, driver_id, payload: DriverUpdate) -> Optional[dict]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    unset = []
    if "status" in changes and changes["status"] != "on-delivery":
        unset.append("current_vehicle")
    driver = await base.modify(database.drivers, driver_id, set_=changes, unset=unset, natural_key="license")
    if driver:
        await _with_vehicles(database, [driver])
    return driver


async def delete(database, driver_id) -> bool:
    deleted = await base.remove(database.drivers, driver_id)
    if deleted:
        logger.info("Driver %s deleted", driver_id)
    return deleted


async def list_page(database, filters: DriverFilters) -> dict:
    query = {}
    if filters.status:
        query["status"] = filters.status
    if filters.search:
        query.update(base.search_filter(filters.search, SEARCH_FIELDS))

    result = await base.page(
        database.drivers, query, base.sort_spec(filters.sort_by, filters.sort_order), filters.page, filters.limit
    )
    await _with_vehicles(database, result["items"])
    return result


async def available(database) -> List[dict]:
    return await by_status(database, "available")


async def by_status(database, status: str) -> List[dict]:
    return await _with_vehicles(database, await base.find_many(database.drivers, {"status": status}))


async def top_rated(database, limit: int = 10) -> List[dict]:
    docs = await base.find_many(database.drivers, {}, sort=base.sort_spec("rating", "desc"), limit=limit)
    return await _with_vehicles(database, docs)


async def most_experienced(database, limit: int = 10) -> List[dict]:
    docs = await base.find_many(database.drivers, {}, sort=base.sort_spec("total_deliveries", "desc"), limit=limit)
    return await _with_vehicles(database, docs)


async def search(database, term: str) -> List[dict]:
    docs = await base.find_many(database.drivers, base.search_filter(term, SEARCH_FIELDS))
    return await _with_vehicles(database, docs)


# -----------------------------
# Lifecycle
# -----------------------------
async def _transition(database, driver_id, label: str, **kwargs) -> Optional[dict]:
    driver = await base.modify(database.drivers, driver_id, **kwargs)
    if driver:
        logger.info("Driver %s: %s -> %s", driver_id, label, driver["status"])
    return driver


async def assign_vehicle(database, driver_id, vehicle_id, now=None) -> Optional[dict]:
    vehicle_oid = base.reference_id(vehicle_id, "vehicle_id")
    return await _transition(
        database, driver_id, "assign_vehicle",
        set_={"status": "on-delivery", "current_vehicle": vehicle_oid}, now=now,
    )


async def release(database, driver_id, now=None) -> Optional[dict]:
    return await _transition(
        database, driver_id, "release", set_={"status": "available"}, unset=["current_vehicle"], now=now
    )


async def mark_off_duty(database, driver_id, now=None) -> Optional[dict]:
    return await _transition(
        database, driver_id, "off_duty", set_={"status": "off-duty"}, unset=["current_vehicle"], now=now
    )


async def suspend(database, driver_id, now=None) -> Optional[dict]:
    return await _transition(
        database, driver_id, "suspend", set_={"status": "suspended"}, unset=["current_vehicle"], now=now
    )


async def update_rating(database, driver_id, rating: float, now=None) -> Optional[dict]:
    clamped = max(0.0, min(5.0, float(rating)))
    return await _transition(database, driver_id, "rating", set_={"rating": clamped}, now=now)


async def record_delivery(database, driver_id, on_time: bool, now=None) -> Optional[dict]:
    inc = {"total_deliveries": 1}
    if on_time:
        inc["on_time_deliveries"] = 1
    return await _transition(database, driver_id, "record_delivery", inc=inc, now=now)


async def restore(database, driver_id, previous: dict) -> Optional[dict]:
    """Put back status/current_vehicle from an earlier snapshot."""
    set_ = {"status": previous["status"]}
    unset = []
    if previous.get("current_vehicle"):
        set_["current_vehicle"] = base.reference_id(previous["current_vehicle"], "current_vehicle")
    else:
        unset.append("current_vehicle")
    return await base.modify(database.drivers, driver_id, set_=set_, unset=unset)


# -----------------------------
# Statistics
# -----------------------------
STATUS_NAMES = {
    "available": "available",
    "on_delivery": "on-delivery",
    "off_duty": "off-duty",
    "suspended": "suspended",
}

EMPTY_STATS = {
    "total_drivers": 0,
    **{name: 0 for name in STATUS_NAMES},
    "avg_rating": 0,
    "total_deliveries": 0,
    "on_time_deliveries": 0,
}


async def get_stats(database) -> dict:
    row = await base.aggregate_one(database.drivers, [
        {
            "$group": {
                "_id": None,
                "total_drivers": {"$sum": 1},
                **base.status_counts("status", STATUS_NAMES),
                "avg_rating": {"$avg": "$rating"},
                "total_deliveries": {"$sum": "$total_deliveries"},
                "on_time_deliveries": {"$sum": "$on_time_deliveries"},
            }
        }
    ])
    stats = {**EMPTY_STATS, **(row or {})}
    if stats["avg_rating"] is None:
        stats["avg_rating"] = 0
    stats["on_time_delivery_rate"] = on_time_delivery_rate(stats["total_deliveries"], stats["on_time_deliveries"])
    return stats


EXPERIENCE_BANDS = {
    "beginner": {"$lt": ["$total_deliveries", 50]},
    "intermediate": {"$and": [{"$gte": ["$total_deliveries", 50]}, {"$lt": ["$total_deliveries", 200]}]},
    "advanced": {"$and": [{"$gte": ["$total_deliveries", 200]}, {"$lt": ["$total_deliveries", 500]}]},
    "expert": {"$gte": ["$total_deliveries", 500]},
}


async def experience_distribution(database) -> dict:
    row = await base.aggregate_one(database.drivers, [
        {
            "$group": {
                "_id": None,
                **{band: {"$sum": {"$cond": [cond, 1, 0]}} for band, cond in EXPERIENCE_BANDS.items()},
            }
        }
    ])
    dist = {band: 0 for band in EXPERIENCE_BANDS}
    dist.update(row or {})
    dist["total"] = sum(dist[band] for band in EXPERIENCE_BANDS)
    return dist
