from fastapi import Request

from fleettrack.cache import QueryCache
from fleettrack.db.mongo import db


def get_db():
    return db()


def get_cache(request: Request) -> QueryCache:
    return request.app.state.cache
