import os

APP_NAME = "FleetTrack API"
APP_VERSION = "1.0.0"

MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "fleettrack")
# Atlas-style SRV URLs need the certifi CA bundle; a plain local mongod does not.
MONGO_TLS = os.getenv("MONGO_TLS", str(MONGO_URL.startswith("mongodb+srv://"))).lower() in ("1", "true", "yes")

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"

PORT = int(os.getenv("PORT", "3001"))
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# seconds
LIST_CACHE_TTL = int(os.getenv("LIST_CACHE_TTL", "300"))
DASHBOARD_CACHE_TTL = int(os.getenv("DASHBOARD_CACHE_TTL", "120"))
CACHE_SWEEP_INTERVAL = int(os.getenv("CACHE_SWEEP_INTERVAL", "600"))
