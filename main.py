# main.py
from dotenv import load_dotenv
load_dotenv()

import asyncio
import contextlib
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleettrack.cache import QueryCache, run_sweeper
from fleettrack.core import config
from fleettrack.core.errors import register_error_handlers
from fleettrack.db import mongo
from fleettrack.domain.metrics import utcnow
from fleettrack.routers import assignments, dashboard, drivers, shipments, vehicles

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fleettrack")


# -----------------------------
# App + CORS
# -----------------------------
app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.CORS_ORIGIN.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.state.cache = QueryCache()

for r in (shipments.router, vehicles.router, drivers.router, dashboard.router, assignments.router):
    app.include_router(r, prefix="/api")


# -----------------------------
# Startup / shutdown
# -----------------------------
@app.on_event("startup")
async def startup():
    try:
        await mongo.ping()
    except Exception:
        logger.exception("Could not connect to MongoDB at startup")
        raise
    await mongo.ensure_indexes(mongo.db())

    app.state.sweeper = asyncio.create_task(run_sweeper(app.state.cache, config.CACHE_SWEEP_INTERVAL))
    logger.info("%s %s started (%s)", config.APP_NAME, config.APP_VERSION, config.APP_ENV)


@app.on_event("shutdown")
async def shutdown():
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    mongo.close()


# -----------------------------
# Basics
# -----------------------------
@app.get("/")
async def root():
    return {"message": "API is running. Go to /docs"}


@app.get("/api/health")
async def health():
    return {
        "status": "OK",
        "timestamp": utcnow().isoformat(),
        "version": config.APP_VERSION,
        "environment": config.APP_ENV,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT)
