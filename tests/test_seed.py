from fleettrack.seed import DRIVERS, SHIPMENTS, VEHICLES, seed
from fleettrack.services import dashboard
from fleettrack.store import shipments


async def test_seed_loads_sample_fleet(database):
    counts = await seed(database)
    assert counts == {"drivers": len(DRIVERS), "vehicles": len(VEHICLES), "shipments": len(SHIPMENTS)}

    stats = await dashboard.compose_stats(database)
    assert stats["in_transit"] == 2
    assert stats["on_delivery_drivers"] == 2
    assert stats["in_use_vehicles"] == 2
    assert stats["off_duty_drivers"] == 1


async def test_seed_is_repeatable(database):
    await seed(database)
    counts = await seed(database)
    assert (await dashboard.compose_stats(database))["total_shipments"] == counts["shipments"]


async def test_seeded_shipments_carry_driver_snapshot(database):
    await seed(database)
    on_road = await shipments.by_status(database, "in-transit")
    assert all(s["driver"]["vehicle"] for s in on_road)
    assert all(s["notes"] == ["Picked up"] for s in on_road)
