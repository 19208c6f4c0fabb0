"""Keeps Driver.current_vehicle and Vehicle.driver paired.

There is no transaction across the documents. Pairing first frees any stale
partner still pointing at either side (the vehicle's previous driver, the
driver's previous vehicle), then writes the driver, then the vehicle. If a
later write fails, every document already touched is put back the way it was
and the original error is re-raised.
"""
import logging

from pymongo.errors import PyMongoError

from fleettrack.core.errors import FleetError, NotFoundError
from fleettrack.store import drivers, vehicles

logger = logging.getLogger(__name__)


async def _load(database, driver_id, vehicle_id=None):
    driver = await drivers.get_raw(database, driver_id)
    if not driver:
        raise NotFoundError("Driver not found")
    vehicle = None
    if vehicle_id is not None:
        vehicle = await vehicles.get_raw(database, vehicle_id)
        if not vehicle:
            raise NotFoundError("Vehicle not found")
    return driver, vehicle


async def _compensate(database, touched, exc: Exception) -> None:
    """touched: (store module, snapshot) pairs in write order; undone newest first."""
    for store, previous in reversed(touched):
        logger.warning("Pairing write failed (%s); restoring %s %s", exc, store.__name__, previous["id"])
        try:
            await store.restore(database, previous["id"], previous)
        except PyMongoError:
            logger.exception("Could not restore %s %s; pairing left inconsistent", store.__name__, previous["id"])


async def _unpair_stale(database, driver: dict, vehicle: dict, touched: list) -> None:
    previous_driver = vehicle.get("driver")
    if previous_driver and previous_driver != driver["id"]:
        stale = await drivers.get_raw(database, previous_driver)
        if stale and stale.get("current_vehicle") == vehicle["id"]:
            touched.append((drivers, stale))
            await drivers.release(database, previous_driver)
            logger.info("Driver %s released from vehicle %s", previous_driver, vehicle["id"])

    previous_vehicle = driver.get("current_vehicle")
    if previous_vehicle and previous_vehicle != vehicle["id"]:
        stale = await vehicles.get_raw(database, previous_vehicle)
        if stale and stale.get("driver") == driver["id"]:
            touched.append((vehicles, stale))
            await vehicles.release(database, previous_vehicle)
            logger.info("Vehicle %s released from driver %s", previous_vehicle, driver["id"])


async def assign(database, driver_id, vehicle_id) -> dict:
    driver, vehicle = await _load(database, driver_id, vehicle_id)

    touched = []
    try:
        await _unpair_stale(database, driver, vehicle, touched)

        touched.append((drivers, driver))
        assigned_driver = await drivers.assign_vehicle(database, driver_id, vehicle_id)
        if assigned_driver is None:
            raise NotFoundError("Driver not found")

        assigned_vehicle = await vehicles.assign_driver(database, vehicle_id, driver_id)
        if assigned_vehicle is None:
            raise NotFoundError("Vehicle not found")
    except (PyMongoError, FleetError) as exc:
        await _compensate(database, touched, exc)
        raise

    return {"driver": assigned_driver, "vehicle": assigned_vehicle}


async def release(database, driver_id) -> dict:
    driver, _ = await _load(database, driver_id)
    vehicle_id = driver.get("current_vehicle")

    released_driver = await drivers.release(database, driver_id)
    if released_driver is None:
        raise NotFoundError("Driver not found")
    released_vehicle = None
    if vehicle_id:
        try:
            released_vehicle = await vehicles.release(database, vehicle_id)
        except PyMongoError as exc:
            await _compensate(database, [(drivers, driver)], exc)
            raise
        if released_vehicle is None:
            # dangling reference: the vehicle is gone, the driver is still freed
            logger.warning("Driver %s referenced missing vehicle %s", driver_id, vehicle_id)

    return {"driver": released_driver, "vehicle": released_vehicle}
