import asyncio

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from fleettrack.deps import get_db
from fleettrack.services import dashboard
from fleettrack.store import shipments
from main import app
from tests.factories import driver_payload, shipment_payload, vehicle_payload


class UnreachableCollection:
    def aggregate(self, pipeline, *args, **kwargs):
        raise ServerSelectionTimeoutError("drivers: no servers available")


class DriversDown:
    """Wraps a database so that only the drivers collection fails."""

    def __init__(self, database):
        self._database = database
        self.drivers = UnreachableCollection()

    def __getattr__(self, name):
        return getattr(self._database, name)


async def test_compose_stats_on_empty_store(database):
    stats = await dashboard.compose_stats(database)
    assert stats["total_shipments"] == 0
    assert stats["total_vehicles"] == 0
    assert stats["total_drivers"] == 0
    assert stats["on_time_delivery_rate"] == 0
    assert stats["avg_driver_rating"] == 0
    assert stats["last_updated"]


async def test_performance_on_empty_store(database):
    perf = await dashboard.performance(database)
    assert perf["delivery_success_rate"] == 0
    assert perf["active_shipments"] == 0
    assert perf["avg_delivery_time_hours"] == 0


async def test_stats_flatten_all_three_collections(client):
    await client.post("/api/shipments", json=shipment_payload())
    await client.post("/api/vehicles", json=vehicle_payload())
    await client.post("/api/drivers", json=driver_payload())

    stats = (await client.get("/api/dashboard/stats")).json()
    assert stats["total_shipments"] == stats["pending"] == 1
    assert stats["total_vehicles"] == stats["available_vehicles"] == 1
    assert stats["total_drivers"] == stats["available_drivers"] == 1
    assert stats["on_time_delivery_rate"] == 97
    assert stats["avg_driver_rating"] == 4.8


async def test_repeated_stats_are_served_from_cache(client, clock):
    first = await client.get("/api/dashboard/stats")
    clock.advance(60)
    second = await client.get("/api/dashboard/stats")
    assert first.content == second.content


async def test_stats_recomputed_after_mutation(client):
    before = (await client.get("/api/dashboard/stats")).json()
    await client.post("/api/drivers", json=driver_payload())
    after = (await client.get("/api/dashboard/stats")).json()

    assert before["total_drivers"] == 0
    assert after["total_drivers"] == 1


async def test_stats_recomputed_after_ttl(client, database, clock):
    await client.get("/api/dashboard/stats")
    await database.drivers.insert_one({"name": "Ghost", "license": "X", "email": "g@fleet.com", "status": "available"})

    clock.advance(121)
    assert (await client.get("/api/dashboard/stats")).json()["total_drivers"] == 1


async def test_one_failing_aggregation_fails_the_whole_view(client, database):
    app.dependency_overrides[get_db] = lambda: DriversDown(database)

    res = await client.get("/api/dashboard/stats")
    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["error"] == "Database error"
    assert "ServerSelectionTimeoutError" in body["stack"]


async def test_distributions(client):
    await client.post("/api/vehicles", json=vehicle_payload(type="van"))
    await client.post("/api/drivers", json=driver_payload(total_deliveries=10, on_time_deliveries=10))

    vehicles_by_type = (await client.get("/api/dashboard/vehicles-by-type")).json()
    assert vehicles_by_type["van"] == 1
    assert vehicles_by_type["total"] == 1

    by_experience = (await client.get("/api/dashboard/drivers-by-experience")).json()
    assert by_experience["beginner"] == 1


async def test_available_resources(client):
    await client.post("/api/vehicles", json=vehicle_payload())
    await client.post("/api/vehicles", json=vehicle_payload(plate="OFF-1", status="offline"))

    res = (await client.get("/api/dashboard/available-resources")).json()
    assert [v["plate"] for v in res["available_vehicles"]] == ["ABC-123"]
    assert res["available_drivers"] == []


async def test_failed_view_cancels_sibling_aggregations(database, monkeypatch):
    cancelled = asyncio.Event()

    async def slow_stats(db):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    monkeypatch.setattr(shipments, "get_stats", slow_stats)
    with pytest.raises(ServerSelectionTimeoutError):
        await dashboard.compose_stats(DriversDown(database))
    assert cancelled.is_set()
