from datetime import datetime, timedelta, timezone

import pytest

from fleettrack.domain import metrics

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "total,on_time,expected",
    [(0, 0, 0), (10, 10, 100), (3, 2, 67), (8, 5, 63), (245, 238, 97)],
)
def test_on_time_delivery_rate(total, on_time, expected):
    assert metrics.on_time_delivery_rate(total, on_time) == expected


@pytest.mark.parametrize(
    "total,level",
    [(0, "Beginner"), (49, "Beginner"), (50, "Intermediate"), (199, "Intermediate"),
     (200, "Advanced"), (499, "Advanced"), (500, "Expert")],
)
def test_experience_level(total, level):
    assert metrics.experience_level(total) == level


@pytest.mark.parametrize(
    "rating,rate,label",
    [(4.8, 95, "Excellent"), (4.8, 85, "Good"), (4.2, 80, "Good"), (3.6, 75, "Fair"),
     (3.4, 99, "Needs improvement"), (5.0, 60, "Needs improvement")],
)
def test_reliability(rating, rate, label):
    assert metrics.reliability(rating, rate) == label


def test_driver_metrics_without_deliveries():
    out = metrics.driver_metrics({"name": "Ana", "phone": "1", "email": "a@b.co", "rating": 5})
    assert out["on_time_delivery_rate"] == 0
    assert out["experience_level"] == "Beginner"
    assert out["is_experienced"] is False
    assert out["contact_info"] == "Ana - 1 (a@b.co)"


def test_maintenance_warning_window():
    assert metrics.needs_maintenance_soon(NOW + timedelta(days=10), NOW) is True
    assert metrics.needs_maintenance_soon(NOW + timedelta(days=30), NOW) is True
    assert metrics.needs_maintenance_soon(NOW + timedelta(days=40), NOW) is False


def test_days_until_maintenance_rounds_up():
    assert metrics.days_until_maintenance(NOW + timedelta(days=2, hours=1), NOW) == 3
    assert metrics.days_until_maintenance(NOW - timedelta(days=1), NOW) == -1


def test_naive_store_datetimes_are_read_as_utc():
    naive = (NOW + timedelta(days=10)).replace(tzinfo=None)
    assert metrics.days_until_maintenance(naive, NOW) == 10


def test_vehicle_metrics():
    out = metrics.vehicle_metrics(
        {"capacity": 5000, "next_maintenance": NOW + timedelta(days=40), "last_maintenance": NOW - timedelta(days=5)},
        NOW,
    )
    assert out == {
        "capacity_info": "5.0 tons",
        "days_until_maintenance": 40,
        "needs_maintenance_soon": False,
        "days_since_last_maintenance": 5,
    }


def test_in_transit_shipment_time_remaining():
    shipment = {"status": "in-transit", "estimated_delivery": NOW + timedelta(days=2)}
    out = metrics.shipment_metrics(shipment, NOW)
    assert out["time_remaining_ms"] == pytest.approx(2 * metrics.DAY_MS, abs=1000)
    assert out["days_delayed"] == 0


def test_time_remaining_never_negative_and_only_in_transit():
    late = NOW - timedelta(hours=3)
    assert metrics.time_remaining_ms("in-transit", late, NOW) == 0
    assert metrics.time_remaining_ms("pending", NOW + timedelta(days=1), NOW) is None


def test_days_delayed_only_for_delayed_status():
    estimated = NOW - timedelta(days=1, hours=2)
    assert metrics.days_delayed("delayed", estimated, NOW) == 2
    assert metrics.days_delayed("in-transit", estimated, NOW) == 0


def test_is_on_time():
    assert metrics.is_on_time(NOW, NOW + timedelta(minutes=1)) is True
    assert metrics.is_on_time(NOW, NOW) is True
    assert metrics.is_on_time(NOW + timedelta(minutes=1), NOW) is False
    assert metrics.is_on_time(None, NOW) is False


def test_add_months_clamps_to_month_end():
    assert metrics.add_months(datetime(2026, 8, 31, tzinfo=timezone.utc), 6) == datetime(2027, 2, 28, tzinfo=timezone.utc)
    assert metrics.add_months(datetime(2026, 3, 15, tzinfo=timezone.utc), 6) == datetime(2026, 9, 15, tzinfo=timezone.utc)


def test_round_half_up():
    assert metrics.round_half_up(62.5) == 63
    assert metrics.round_half_up(4.65, 1) == pytest.approx(4.7)
    assert metrics.round_half_up(4.64, 1) == pytest.approx(4.6)
