from fastapi import APIRouter, Depends

from fleettrack.cache import QueryCache
from fleettrack.deps import get_cache, get_db
from fleettrack.schemas.driver import Pairing
from fleettrack.services import assignments

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("")
async def pair(body: Pairing, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    try:
        return await assignments.assign(database, body.driver_id, body.vehicle_id)
    finally:
        # a compensated failure still wrote twice
        cache.clear()


@router.delete("/{driver_id}")
async def unpair(driver_id: str, database=Depends(get_db), cache: QueryCache = Depends(get_cache)):
    try:
        return await assignments.release(database, driver_id)
    finally:
        cache.clear()
