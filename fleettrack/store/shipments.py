import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from fleettrack.domain.metrics import round_half_up, utcnow
from fleettrack.schemas.shipment import ShipmentCreate, ShipmentFilters, ShipmentUpdate
from fleettrack.store import base

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("tracking_number", "customer.name", "origin", "destination")
HOUR_MS = 60 * 60 * 1000


def _snapshot(driver: Optional[dict]) -> Optional[dict]:
    if not driver:
        return None
    if driver.get("id"):
        driver = {**driver, "id": base.reference_id(driver["id"], "driver.id")}
    return driver


async def create(database, payload: ShipmentCreate) -> dict:
    doc = payload.model_dump()
    doc["tracking_number"] = doc["tracking_number"].strip()
    doc["driver"] = _snapshot(doc.get("driver"))
    if doc["driver"] is None:
        doc.pop("driver")
    if doc.get("actual_delivery") is None:
        doc.pop("actual_delivery", None)

    shipment = await base.insert(database.shipments, doc, natural_key="tracking_number")
    logger.info("Shipment %s created (%s)", shipment["id"], shipment["tracking_number"])
    return shipment


async def get(database, shipment_id) -> Optional[dict]:
    return await base.find(database.shipments, shipment_id)


async def update(database, shipment_id, payload: ShipmentUpdate) -> Optional[dict]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "driver" in changes:
        changes["driver"] = _snapshot(changes["driver"])
    unset = []
    if "status" in changes and changes["status"] != "delivered":
        unset.append("actual_delivery")
    return await base.modify(
        database.shipments, shipment_id, set_=changes, unset=unset, natural_key="tracking_number"
    )


async def delete(database, shipment_id) -> bool:
    deleted = await base.remove(database.shipments, shipment_id)
    if deleted:
        logger.info("Shipment %s deleted", shipment_id)
    return deleted


async def list_page(database, filters: ShipmentFilters) -> dict:
    query = {}
    if filters.status:
        query["status"] = filters.status
    if filters.priority:
        query["priority"] = filters.priority
    if filters.search:
        query.update(base.search_filter(filters.search, SEARCH_FIELDS))

    return await base.page(
        database.shipments, query, base.sort_spec(filters.sort_by, filters.sort_order), filters.page, filters.limit
    )


async def by_status(database, status: str) -> List[dict]:
    return await base.find_many(database.shipments, {"status": status})


async def search(database, term: str) -> List[dict]:
    return await base.find_many(database.shipments, base.search_filter(term, SEARCH_FIELDS))


async def recent(database, limit: int = 10) -> List[dict]:
    return await base.find_many(database.shipments, {}, sort=base.sort_spec("created_at", "desc"), limit=limit)


async def urgent(database) -> List[dict]:
    return await base.find_many(database.shipments, {"priority": "urgent"})


async def delayed(database, now=None) -> List[dict]:
    return await base.find_many(
        database.shipments,
        {"status": "delayed", "estimated_delivery": {"$lt": base.bson_datetime(now or utcnow())}},
    )


async def by_driver(database, driver_id) -> List[dict]:
    return await base.find_many(database.shipments, {"driver.id": base.reference_id(driver_id, "driver_id")})


async def by_date_range(database, start: datetime, end: datetime) -> List[dict]:
    return await base.find_many(
        database.shipments,
        {"created_at": {"$gte": base.bson_datetime(start), "$lte": base.bson_datetime(end)}},
        sort=base.sort_spec("created_at", "desc"),
    )


# -----------------------------
# Lifecycle
# -----------------------------
async def update_status(database, shipment_id, status: str, note: Optional[str] = None, now=None) -> Optional[dict]:
    unset = [] if status == "delivered" else ["actual_delivery"]
    push = {"notes": note} if note else None
    shipment = await base.modify(database.shipments, shipment_id, set_={"status": status}, unset=unset, push=push, now=now)
    if shipment:
        logger.info("Shipment %s: status -> %s", shipment_id, status)
    return shipment


async def mark_delivered(database, shipment_id, actual_date: Optional[datetime] = None, now=None) -> Optional[dict]:
    now = now or utcnow()
    shipment = await base.modify(
        database.shipments, shipment_id,
        set_={"status": "delivered", "actual_delivery": actual_date or now},
        now=now,
    )
    if shipment:
        logger.info("Shipment %s delivered", shipment_id)
    return shipment


# -----------------------------
# Statistics
# -----------------------------
STATUS_NAMES = {
    "pending": "pending",
    "in_transit": "in-transit",
    "delivered": "delivered",
    "delayed": "delayed",
    "cancelled": "cancelled",
}

EMPTY_STATS = {"total_shipments": 0, **{name: 0 for name in STATUS_NAMES}}


async def get_stats(database) -> dict:
    row = await base.aggregate_one(database.shipments, [
        {"$group": {"_id": None, "total_shipments": {"$sum": 1}, **base.status_counts("status", STATUS_NAMES)}}
    ])
    return {**EMPTY_STATS, **(row or {})}


async def delivery_performance(database) -> dict:
    """Delivered count, on-time count and mean hours from creation to delivery, in one pass."""
    delivered_stage = [
        {"$match": {"status": "delivered"}},
        {
            "$group": {
                "_id": None,
                "delivered": {"$sum": 1},
                "on_time": {
                    "$sum": {
                        "$cond": [
                            {"$and": [
                                {"$gt": ["$actual_delivery", None]},
                                {"$gt": ["$estimated_delivery", None]},
                                {"$lte": ["$actual_delivery", "$estimated_delivery"]},
                            ]},
                            1,
                            0,
                        ]
                    }
                },
                "avg_delivery_ms": {
                    "$avg": {
                        "$cond": [
                            {"$gt": ["$actual_delivery", None]},
                            {"$subtract": ["$actual_delivery", "$created_at"]},
                            None,
                        ]
                    }
                },
            }
        },
    ]
    row, active = await asyncio.gather(
        base.aggregate_one(database.shipments, delivered_stage),
        database.shipments.count_documents({"status": "in-transit"}),
    )
    row = row or {"delivered": 0, "on_time": 0, "avg_delivery_ms": None}
    avg_ms = row.get("avg_delivery_ms")
    return {
        "delivered": row["delivered"],
        "on_time": row["on_time"],
        "active": active,
        "avg_delivery_hours": round_half_up(avg_ms / HOUR_MS, 1) if avg_ms else 0,
    }
