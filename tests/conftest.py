import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from fleettrack.cache import QueryCache
from fleettrack.db.mongo import ensure_indexes
from fleettrack.deps import get_cache, get_db
from main import app


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
async def database():
    database = AsyncMongoMockClient()["fleettrack_test"]
    await ensure_indexes(database)
    return database


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(clock=clock)


@pytest.fixture
async def client(database, cache):
    app.dependency_overrides[get_db] = lambda: database
    app.dependency_overrides[get_cache] = lambda: cache
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()

