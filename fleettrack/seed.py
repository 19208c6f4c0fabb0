"""Load sample drivers, vehicles and shipments.

    python -m fleettrack.seed
"""
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
from datetime import timedelta

from fleettrack.db import mongo
from fleettrack.domain.metrics import utcnow
from fleettrack.schemas.driver import DriverCreate
from fleettrack.schemas.shipment import DriverSnapshot, ShipmentCreate, ShipmentUpdate
from fleettrack.schemas.vehicle import VehicleCreate
from fleettrack.store import drivers, shipments, vehicles

logger = logging.getLogger(__name__)

DRIVERS = [
    {"name": "Carlos Mendoza", "license": "DL-123456", "phone": "+57 300 123 4567",
     "email": "carlos.mendoza@fleettrack.example.com", "rating": 4.8, "total_deliveries": 245, "on_time_deliveries": 238},
    {"name": "Ana Rodriguez", "license": "DL-789012", "phone": "+57 300 987 6543",
     "email": "ana.rodriguez@fleettrack.example.com", "rating": 4.9, "total_deliveries": 189, "on_time_deliveries": 185},
    {"name": "Luis Garcia", "license": "DL-345678", "phone": "+57 300 555 1234",
     "email": "luis.garcia@fleettrack.example.com", "rating": 4.6, "total_deliveries": 156, "on_time_deliveries": 148},
    {"name": "Maria Lopez", "license": "DL-901234", "phone": "+57 300 777 8888", "status": "off-duty",
     "email": "maria.lopez@fleettrack.example.com", "rating": 4.7, "total_deliveries": 203, "on_time_deliveries": 195},
    {"name": "Juan Perez", "license": "DL-567890", "phone": "+57 300 444 5555",
     "email": "juan.perez@fleettrack.example.com", "rating": 4.5, "total_deliveries": 98, "on_time_deliveries": 92},
]

VEHICLES = [
    ("ABC-123", "truck", 5000, "available", -60, 120),
    ("XYZ-789", "van", 1500, "available", -45, 135),
    ("DEF-456", "truck", 8000, "maintenance", -170, 10),
    ("GHI-012", "pickup", 1000, "available", -20, 160),
    ("JKL-345", "trailer", 12000, "offline", -90, 90),
]

SHIPMENTS = [
    ("TRK-000001", "Bogota", "Medellin", "pending", "high", 250, 2, 415, 9),
    ("TRK-000002", "Cali", "Barranquilla", "pending", "medium", 120, 3, 1080, 20),
    ("TRK-000003", "Cartagena", "Bucaramanga", "pending", "urgent", 80, 1, 640, 12),
    ("TRK-000004", "Pereira", "Manizales", "pending", "low", 45, 1, 55, 1.5),
    ("TRK-000005", "Bogota", "Cali", "pending", "medium", 310, 4, 460, 10),
]


async def seed(database) -> dict:
    for collection in (database.shipments, database.vehicles, database.drivers):
        await collection.delete_many({})

    now = utcnow()
    created_drivers = [await drivers.create(database, DriverCreate(**d)) for d in DRIVERS]
    created_vehicles = []
    for plate, kind, capacity, status, last_days, next_days in VEHICLES:
        created_vehicles.append(await vehicles.create(database, VehicleCreate(
            plate=plate, type=kind, capacity=capacity, status=status,
            last_maintenance=now + timedelta(days=last_days),
            next_maintenance=now + timedelta(days=next_days),
        )))

    created_shipments = []
    for i, (tracking, origin, dest, status, priority, weight, eta_days, km, hours) in enumerate(SHIPMENTS):
        created_shipments.append(await shipments.create(database, ShipmentCreate(
            tracking_number=tracking, origin=origin, destination=dest, status=status,
            priority=priority, weight=weight,
            customer={"name": f"Customer {i + 1}", "email": f"customer{i + 1}@example.com", "phone": "+57 300 000 0000"},
            estimated_delivery=now + timedelta(days=eta_days),
            route={"distance": km, "estimated_time": hours},
        )))

    # put the first two drivers on the road with a shipment each
    for driver, vehicle, shipment in zip(created_drivers[:2], created_vehicles[:2], created_shipments[:2]):
        await drivers.assign_vehicle(database, driver["id"], vehicle["id"])
        await vehicles.assign_driver(database, vehicle["id"], driver["id"])
        snapshot = DriverSnapshot(id=driver["id"], name=driver["name"], phone=driver["phone"], vehicle=vehicle["plate"])
        await shipments.update(database, shipment["id"], ShipmentUpdate(driver=snapshot))
        await shipments.update_status(database, shipment["id"], "in-transit", "Picked up")

    counts = {
        "drivers": len(created_drivers),
        "vehicles": len(created_vehicles),
        "shipments": len(created_shipments),
    }
    logger.info("Seeded %(drivers)d drivers, %(vehicles)d vehicles, %(shipments)d shipments", counts)
    return counts


async def main() -> None:
    try:
        await mongo.ensure_indexes(mongo.db())
        await seed(mongo.db())
    finally:
        mongo.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
