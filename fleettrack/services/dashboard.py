"""Cross-collection views for the dashboard.

Aggregations across collections run concurrently. A failure in any one of
them fails the whole view rather than reporting zeros for part of it.
"""
import asyncio

from fleettrack.domain.metrics import round_half_up, utcnow
from fleettrack.store import drivers, shipments, vehicles


def _stamp() -> str:
    return utcnow().isoformat()


async def _all(*aws):
    """gather(), but a failure cancels and collects the siblings still running."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def compose_stats(database) -> dict:
    shipment_stats, vehicle_stats, driver_stats = await _all(
        shipments.get_stats(database),
        vehicles.get_stats(database),
        drivers.get_stats(database),
    )
    return {
        "total_shipments": shipment_stats["total_shipments"],
        "in_transit": shipment_stats["in_transit"],
        "delivered": shipment_stats["delivered"],
        "pending": shipment_stats["pending"],
        "delayed": shipment_stats["delayed"],
        "cancelled": shipment_stats["cancelled"],

        "total_vehicles": vehicle_stats["total_vehicles"],
        "available_vehicles": vehicle_stats["available"],
        "in_use_vehicles": vehicle_stats["in_use"],
        "maintenance_vehicles": vehicle_stats["maintenance"],
        "offline_vehicles": vehicle_stats["offline"],

        "total_drivers": driver_stats["total_drivers"],
        "available_drivers": driver_stats["available"],
        "on_delivery_drivers": driver_stats["on_delivery"],
        "off_duty_drivers": driver_stats["off_duty"],
        "suspended_drivers": driver_stats["suspended"],

        "on_time_delivery_rate": driver_stats["on_time_delivery_rate"],
        "avg_driver_rating": round_half_up(driver_stats["avg_rating"], 1),

        "last_updated": _stamp(),
    }


async def performance(database) -> dict:
    perf = await shipments.delivery_performance(database)
    delivered = perf["delivered"]
    return {
        "delivery_success_rate": int(round_half_up(perf["on_time"] / delivered * 100)) if delivered else 0,
        "active_shipments": perf["active"],
        "avg_delivery_time_hours": perf["avg_delivery_hours"],
        "last_updated": _stamp(),
    }


async def shipments_by_status(database) -> dict:
    stats = await shipments.get_stats(database)
    return {
        "pending": stats["pending"],
        "in_transit": stats["in_transit"],
        "delivered": stats["delivered"],
        "delayed": stats["delayed"],
        "cancelled": stats["cancelled"],
        "total": stats["total_shipments"],
        "last_updated": _stamp(),
    }


async def vehicles_by_type(database) -> dict:
    return {**await vehicles.type_distribution(database), "last_updated": _stamp()}


async def drivers_by_experience(database) -> dict:
    return {**await drivers.experience_distribution(database), "last_updated": _stamp()}


async def available_resources(database) -> dict:
    available_vehicles, available_drivers = await _all(
        vehicles.available(database),
        drivers.available(database),
    )
    return {
        "available_vehicles": available_vehicles,
        "available_drivers": available_drivers,
        "last_updated": _stamp(),
    }
