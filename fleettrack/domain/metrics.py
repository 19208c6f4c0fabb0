"""Computed values for drivers, vehicles and shipments.

Every function takes the stored document (or some of its fields) plus the
current time and returns a plain value. Nothing here touches the database.
"""
import calendar
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

DAY_MS = 24 * 60 * 60 * 1000
MAINTENANCE_WARNING_DAYS = 30
MAINTENANCE_INTERVAL_MONTHS = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # the store hands back naive datetimes unless the client is tz-aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _ms(delta: timedelta) -> float:
    return delta.total_seconds() * 1000


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(_ms(delta) / DAY_MS)


# ---------------------------------------------------------------- drivers

def on_time_delivery_rate(total_deliveries: int, on_time_deliveries: int) -> int:
    if not total_deliveries:
        return 0
    return int(round_half_up(on_time_deliveries / total_deliveries * 100))


def experience_level(total_deliveries: int) -> str:
    if total_deliveries >= 500:
        return "Expert"
    if total_deliveries >= 200:
        return "Advanced"
    if total_deliveries >= 50:
        return "Intermediate"
    return "Beginner"


def reliability(rating: float, rate: int) -> str:
    if rating >= 4.5 and rate >= 90:
        return "Excellent"
    if rating >= 4.0 and rate >= 80:
        return "Good"
    if rating >= 3.5 and rate >= 70:
        return "Fair"
    return "Needs improvement"


def driver_metrics(driver: dict) -> dict:
    total = driver.get("total_deliveries", 0)
    rate = on_time_delivery_rate(total, driver.get("on_time_deliveries", 0))
    rating = driver.get("rating", 0)
    return {
        "on_time_delivery_rate": rate,
        "experience_level": experience_level(total),
        "reliability": reliability(rating, rate),
        "is_experienced": total >= 100,
        "is_reliable": rating >= 4.5 and rate >= 90,
        "contact_info": f"{driver.get('name')} - {driver.get('phone')} ({driver.get('email')})",
    }


# ---------------------------------------------------------------- vehicles

def days_until_maintenance(next_maintenance: datetime, now: datetime) -> int:
    return _ceil_days(as_utc(next_maintenance) - now)


def needs_maintenance_soon(next_maintenance: datetime, now: datetime) -> bool:
    return days_until_maintenance(next_maintenance, now) <= MAINTENANCE_WARNING_DAYS


def days_since_last_maintenance(last_maintenance: datetime, now: datetime) -> int:
    return _ceil_days(now - as_utc(last_maintenance))


def capacity_info(capacity: float) -> str:
    return f"{capacity / 1000:.1f} tons"


def vehicle_metrics(vehicle: dict, now: datetime) -> dict:
    out = {"capacity_info": capacity_info(vehicle.get("capacity", 0))}
    if vehicle.get("next_maintenance"):
        out["days_until_maintenance"] = days_until_maintenance(vehicle["next_maintenance"], now)
        out["needs_maintenance_soon"] = out["days_until_maintenance"] <= MAINTENANCE_WARNING_DAYS
    if vehicle.get("last_maintenance"):
        out["days_since_last_maintenance"] = days_since_last_maintenance(vehicle["last_maintenance"], now)
    return out


# ---------------------------------------------------------------- shipments

def days_delayed(status: str, estimated_delivery: Optional[datetime], now: datetime) -> int:
    if status != "delayed" or estimated_delivery is None:
        return 0
    return _ceil_days(now - as_utc(estimated_delivery))


def time_remaining_ms(status: str, estimated_delivery: Optional[datetime], now: datetime) -> Optional[int]:
    if status != "in-transit" or estimated_delivery is None:
        return None
    return max(0, int(_ms(as_utc(estimated_delivery) - now)))


def is_on_time(actual_delivery: Optional[datetime], estimated_delivery: Optional[datetime]) -> bool:
    if actual_delivery is None or estimated_delivery is None:
        return False
    return as_utc(actual_delivery) <= as_utc(estimated_delivery)


def delivery_time_ms(actual_delivery: Optional[datetime], created_at: Optional[datetime]) -> Optional[int]:
    if actual_delivery is None or created_at is None:
        return None
    return int(_ms(as_utc(actual_delivery) - as_utc(created_at)))


def shipment_metrics(shipment: dict, now: datetime) -> dict:
    status = shipment.get("status")
    estimated = shipment.get("estimated_delivery")
    actual = shipment.get("actual_delivery")
    return {
        "days_delayed": days_delayed(status, estimated, now),
        "time_remaining_ms": time_remaining_ms(status, estimated, now),
        "is_on_time": is_on_time(actual, estimated),
        "delivery_time_ms": delivery_time_ms(actual, shipment.get("created_at")),
    }
