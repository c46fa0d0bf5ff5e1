from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from backend.domain.models import GuestInfo, GuestVerification, Occupancy, Room
from backend.repository.hotel_repository import HotelRepository
from backend.services.booking_service import BookingLifecycleService
from backend.services.service_charge_service import ServiceChargeLedger
from backend.utils.config import get_settings


GUEST = GuestInfo(
    full_name="Ada Lovelace",
    email="ada@example.com",
    phone="+44 20 7946 0000",
    national_id="ID-1815",
)
VERIFICATION = GuestVerification(
    full_name="Ada Lovelace",
    national_id="ID-1815",
    phone="+44 20 7946 0000",
)
TWO_ADULTS = Occupancy(number_of_guests=2)


class FrozenClock:
    """Callable clock the services read instead of ``datetime.now``."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **delta: float) -> None:
        self.current = self.current + timedelta(**delta)


@pytest.fixture
def settings(tmp_path):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / "hotel_test.db",
        admin_token=None,
        seed_demo_rooms=False,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 5, 20, 9, 0))


@pytest.fixture
def repository(settings) -> HotelRepository:
    repository = HotelRepository(settings)
    repository.initialize_database()
    return repository


@pytest.fixture
def rooms(repository) -> dict[str, Room]:
    return {
        "R101": repository.create_room("R101", Decimal("200.00"), 2),
        "R102": repository.create_room("R102", Decimal("200.00"), 2),
        "R103": repository.create_room("R103", Decimal("250.00"), 3, room_type="DELUXE"),
    }


@pytest.fixture
def service(repository, settings, clock) -> BookingLifecycleService:
    return BookingLifecycleService(repository=repository, settings=settings, clock=clock)


@pytest.fixture
def ledger(service) -> ServiceChargeLedger:
    return ServiceChargeLedger(lifecycle=service)
