"""
Shared fixtures for the booking engine tests.
"""

from typing import Any, Dict, List

import pytest

from mechanic_booking.config import Settings
from mechanic_booking.models import ActingUser, Booking, CatalogPart, Job, Part
from mechanic_booking.normalizer import normalize


def assert_price_keys_consistent(booking: Booking) -> None:
    assert set(booking.job_prices) <= set(booking.job_ids())
    assert set(booking.part_prices) <= set(booking.part_ids())


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def admin() -> ActingUser:
    return ActingUser(id="admin-1", name="Ada Admin", is_admin=True)


@pytest.fixture
def mechanic() -> ActingUser:
    return ActingUser(id="mech-1", name="Mo Mechanic", contact="07700 900001")


@pytest.fixture
def other_mechanic() -> ActingUser:
    return ActingUser(id="mech-2", name="Olu Other")


@pytest.fixture
def legacy_raw() -> Dict[str, Any]:
    """Booking in the older layout: ``car``, list ``jobsPrices``, mapping ``partItemsPrices``."""
    return {
        "id": "bk-100",
        "car": {"id": "car-1", "carNumber": "AB12 CDE", "make": "Ford", "model": "Fiesta", "bookings": []},
        "jobs": [
            {"id": "job-1", "name": "Brake pads replacement", "duration": 90, "category": "Brakes"},
            {"id": "job-2", "name": "Oil change", "duration": 30},
        ],
        "jobsPrices": [
            {"id": "job-1", "price": 60, "duration": 120},
            {"id": "job-2", "price": 40, "duration": 30},
        ],
        "partItems": [
            {"id": "part-1", "title": "Brake Pad", "tier": "gold", "priceForConsumer": 35.5, "price": 20},
        ],
        "partItemsPrices": {"part-1": {"price": 35.5}},
        "schedules": [{"id": "slot-1", "timeInterval": "09:00-12:00", "dates": ["2024-05-01", "2024-05-02"]}],
        "location": {"postalCode": "B1 1AA"},
        "status": "pending",
        "totalPrice": 0,
        "createdAt": "2024-04-20T10:15:00Z",
    }


@pytest.fixture
def booking(legacy_raw) -> Booking:
    return normalize(legacy_raw)


@pytest.fixture
def empty_booking() -> Booking:
    return normalize({"id": "bk-empty"})


@pytest.fixture
def new_job() -> Job:
    return Job(id="job-3", name="Battery check", duration=45, price_per_hour=80.0)


@pytest.fixture
def in_stock_part() -> Part:
    return Part(id="part-2", title="Oil Filter", stock_summary="In stock.", price_for_consumer=12.0)


@pytest.fixture
def out_of_stock_part() -> Part:
    return Part(id="part-3", title="Timing Belt", stock_summary="Out of stock.", price_for_consumer=99.0)


@pytest.fixture
def catalog_parts() -> List[CatalogPart]:
    return [
        CatalogPart(
            id="c-1",
            title="Brake Pad",
            sku="BP-100",
            tier="gold",
            stock_summary="In stock.",
            price_for_consumer=35.0,
            category="Brakes",
            groups=["Front axle", "Service"],
            image="brakes.png",
        ),
        CatalogPart(
            id="c-2",
            title="Oil Filter",
            sku="OF-200",
            tier="silver",
            stock_summary="Out of stock.",
            price_for_consumer=12.5,
            category="Engine",
            groups=["Service"],
        ),
        CatalogPart(
            id="c-3",
            title="air filter",
            sku="AF-300",
            tier="bronze",
            stock_summary="in stock at hub",
            price_for_consumer=18.0,
            category="Engine",
            groups=["Service"],
            image="engine.png",
        ),
        CatalogPart(
            id="c-4",
            title="Brake Disc",
            sku="BD-400",
            tier="gold",
            stock_summary="In stock.",
            price_for_consumer=80.0,
            category="Brakes",
            is_deleted=True,
        ),
        CatalogPart(
            id="c-5",
            title="Wiper Blade",
            sku="WB-500",
            tier="silver",
            stock_summary="In stock.",
            price_for_consumer=9.99,
        ),
    ]


@pytest.fixture
def check_keys():
    """Assert the price-key invariant on a booking."""
    return assert_price_keys_consistent
