import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from fleettrack.core.errors import NotFoundError
from fleettrack.schemas.driver import DriverCreate
from fleettrack.schemas.vehicle import VehicleCreate
from fleettrack.services import assignments
from fleettrack.store import drivers, vehicles
from tests.factories import driver_payload, vehicle_payload


@pytest.fixture
async def pair(database):
    driver = await drivers.create(database, DriverCreate(**driver_payload()))
    vehicle = await vehicles.create(database, VehicleCreate(**vehicle_payload()))
    return driver, vehicle


async def test_assign_links_both_sides(database, pair):
    driver, vehicle = pair
    result = await assignments.assign(database, driver["id"], vehicle["id"])

    assert result["driver"]["status"] == "on-delivery"
    assert result["driver"]["current_vehicle"] == vehicle["id"]
    assert result["vehicle"]["status"] == "in-use"
    assert result["vehicle"]["driver"] == driver["id"]


async def test_failed_vehicle_write_restores_driver(database, pair, monkeypatch):
    driver, vehicle = pair

    async def unreachable(*args, **kwargs):
        raise AutoReconnect("connection reset")

    monkeypatch.setattr(vehicles, "assign_driver", unreachable)
    with pytest.raises(AutoReconnect):
        await assignments.assign(database, driver["id"], vehicle["id"])

    restored = await drivers.get_raw(database, driver["id"])
    assert restored["status"] == "available"
    assert "current_vehicle" not in restored
    assert (await vehicles.get(database, vehicle["id"]))["status"] == "available"


async def test_release_frees_both_sides(database, pair):
    driver, vehicle = pair
    await assignments.assign(database, driver["id"], vehicle["id"])

    result = await assignments.release(database, driver["id"])
    assert result["driver"]["status"] == "available"
    assert "current_vehicle" not in result["driver"]
    assert result["vehicle"]["status"] == "available"
    assert "driver" not in result["vehicle"]


async def test_release_with_dangling_vehicle(database, pair):
    driver, _ = pair
    await drivers.assign_vehicle(database, driver["id"], str(ObjectId()))

    result = await assignments.release(database, driver["id"])
    assert result["driver"]["status"] == "available"
    assert result["vehicle"] is None


async def test_assign_missing_vehicle(database, pair):
    driver, _ = pair
    with pytest.raises(NotFoundError):
        await assignments.assign(database, driver["id"], str(ObjectId()))
    assert (await drivers.get_raw(database, driver["id"]))["status"] == "available"


async def test_assignment_routes(client):
    driver = (await client.post("/api/drivers", json=driver_payload())).json()
    vehicle = (await client.post("/api/vehicles", json=vehicle_payload())).json()

    res = await client.post("/api/assignments", json={"driver_id": driver["id"], "vehicle_id": vehicle["id"]})
    assert res.status_code == 200
    assert res.json()["vehicle"]["driver"] == driver["id"]

    fetched = (await client.get(f"/api/vehicles/{vehicle['id']}")).json()
    assert fetched["driver"]["name"] == "Carlos Mendoza"

    res = await client.delete(f"/api/assignments/{driver['id']}")
    assert res.json()["driver"]["status"] == "available"


async def test_assignment_route_missing_driver(client):
    vehicle = (await client.post("/api/vehicles", json=vehicle_payload())).json()
    res = await client.post("/api/assignments", json={"driver_id": str(ObjectId()), "vehicle_id": vehicle["id"]})
    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Driver not found"}


async def test_pairing_taken_vehicle_frees_previous_driver(database, pair):
    first, vehicle = pair
    second = await drivers.create(database, DriverCreate(**driver_payload(license="DL-2", email="ana@fleet.com")))
    await assignments.assign(database, first["id"], vehicle["id"])

    result = await assignments.assign(database, second["id"], vehicle["id"])
    assert result["vehicle"]["driver"] == second["id"]

    freed = await drivers.get_raw(database, first["id"])
    assert freed["status"] == "available"
    assert "current_vehicle" not in freed


async def test_moving_driver_frees_previous_vehicle(database, pair):
    driver, old_vehicle = pair
    new_vehicle = await vehicles.create(database, VehicleCreate(**vehicle_payload(plate="NEW-1")))
    await assignments.assign(database, driver["id"], old_vehicle["id"])

    result = await assignments.assign(database, driver["id"], new_vehicle["id"])
    assert result["driver"]["current_vehicle"] == new_vehicle["id"]

    freed = await vehicles.get_raw(database, old_vehicle["id"])
    assert freed["status"] == "available"
    assert "driver" not in freed


async def test_reassigning_same_pair_is_stable(database, pair):
    driver, vehicle = pair
    await assignments.assign(database, driver["id"], vehicle["id"])
    result = await assignments.assign(database, driver["id"], vehicle["id"])

    assert result["driver"]["current_vehicle"] == vehicle["id"]
    assert result["vehicle"]["driver"] == driver["id"]


async def test_failed_pairing_restores_previous_pairing(database, pair, monkeypatch):
    first, vehicle = pair
    second = await drivers.create(database, DriverCreate(**driver_payload(license="DL-2", email="ana@fleet.com")))
    await assignments.assign(database, first["id"], vehicle["id"])

    async def unreachable(*args, **kwargs):
        raise AutoReconnect("connection reset")

    monkeypatch.setattr(vehicles, "assign_driver", unreachable)
    with pytest.raises(AutoReconnect):
        await assignments.assign(database, second["id"], vehicle["id"])

    restored = await drivers.get_raw(database, first["id"])
    assert restored["status"] == "on-delivery"
    assert restored["current_vehicle"] == vehicle["id"]
    assert (await drivers.get_raw(database, second["id"]))["status"] == "available"
    assert (await vehicles.get_raw(database, vehicle["id"]))["driver"] == first["id"]


async def test_pairing_route_keeps_both_sides_in_step(client):
    first = (await client.post("/api/drivers", json=driver_payload())).json()
    second = (await client.post("/api/drivers", json=driver_payload(license="DL-2", email="ana@fleet.com"))).json()
    vehicle = (await client.post("/api/vehicles", json=vehicle_payload())).json()

    await client.post("/api/assignments", json={"driver_id": first["id"], "vehicle_id": vehicle["id"]})
    await client.post("/api/assignments", json={"driver_id": second["id"], "vehicle_id": vehicle["id"]})

    freed = (await client.get(f"/api/drivers/{first['id']}")).json()
    assert freed["status"] == "available"
    assert "current_vehicle" not in freed
    assert (await client.get(f"/api/vehicles/{vehicle['id']}")).json()["driver"]["id"] == second["id"]
