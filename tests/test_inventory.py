from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest
from conftest import GUEST, TWO_ADULTS

from backend.domain.errors import BookingValidationError, ConflictError, RoomNotFoundError
from backend.domain.models import BookingStatus, DateRange
from backend.services.booking_service import BookingLifecycleService


JUNE_1 = date(2024, 6, 1)
JUNE_2 = date(2024, 6, 2)
JUNE_3 = date(2024, 6, 3)
JUNE_4 = date(2024, 6, 4)
JUNE_5 = date(2024, 6, 5)


def _book(service: BookingLifecycleService, room_id: int, check_in: date, check_out: date):
    return service.create_booking(
        room_id=room_id,
        check_in_date=check_in,
        check_out_date=check_out,
        guest=GUEST,
        occupancy=TWO_ADULTS,
    )


def test_create_booking_on_free_room(service, rooms):
    booking = _book(service, rooms["R101"].room_id, JUNE_1, JUNE_3)

    assert booking.status is BookingStatus.PENDING
    assert booking.number_of_nights == 2
    assert booking.financials.subtotal == Decimal("400.00")
    assert booking.room_price_per_night == Decimal("200.00")
    assert booking.booking_number.startswith("BK20240520")
    assert len(booking.booking_number) == 18


def test_overlapping_booking_on_pending_hold_conflicts(service, rooms):
    room_id = rooms["R101"].room_id
    first = _book(service, room_id, JUNE_1, JUNE_3)

    with pytest.raises(ConflictError) as excinfo:
        _book(service, room_id, JUNE_2, JUNE_4)

    assert excinfo.value.room_id == room_id
    assert excinfo.value.conflicting_booking_numbers == [first.booking_number]
    assert service.repository.count_bookings() == 1


def test_back_to_back_stays_do_not_conflict(service, rooms):
    room_id = rooms["R101"].room_id
    _book(service, room_id, JUNE_1, JUNE_3)

    assert service.check_availability(room_id, JUNE_3, JUNE_5) is True
    second = _book(service, room_id, JUNE_3, JUNE_5)
    assert second.check_in_date == JUNE_3


def test_same_dates_on_other_room_are_free(service, rooms):
    _book(service, rooms["R101"].room_id, JUNE_1, JUNE_3)
    assert service.check_availability(rooms["R102"].room_id, JUNE_1, JUNE_3) is True


def test_availability_requires_existing_room(service, rooms):
    with pytest.raises(RoomNotFoundError):
        service.check_availability(999, JUNE_1, JUNE_3)


def test_availability_rejects_inverted_range(service, rooms):
    with pytest.raises(BookingValidationError):
        service.check_availability(rooms["R101"].room_id, JUNE_3, JUNE_1)


def test_cancelled_booking_releases_its_range(service, rooms):
    room_id = rooms["R101"].room_id
    booking = _book(service, room_id, JUNE_1, JUNE_3)
    assert service.check_availability(room_id, JUNE_1, JUNE_3) is False

    service.cancel_booking(booking.booking_id, "plans changed")

    assert service.check_availability(room_id, JUNE_1, JUNE_3) is True
    assert _book(service, room_id, JUNE_1, JUNE_3).status is BookingStatus.PENDING


def test_price_snapshot_survives_room_price_change(service, rooms):
    room_id = rooms["R101"].room_id
    booking = _book(service, room_id, JUNE_1, JUNE_3)

    service.repository.update_room_price(room_id, Decimal("350.00"))
    reloaded = service.get_booking(booking.booking_id)

    assert reloaded.room_price_per_night == Decimal("200.00")
    assert reloaded.financials.subtotal == Decimal("400.00")


def test_concurrent_reservations_admit_exactly_one(service, rooms):
    room_id = rooms["R101"].room_id
    ranges = [(JUNE_1, JUNE_3), (JUNE_2, JUNE_4), (JUNE_1, JUNE_2), (JUNE_2, JUNE_3)] * 3

    def attempt(stay):
        try:
            return _book(service, room_id, *stay)
        except ConflictError:
            return None

    with ThreadPoolExecutor(max_workers=6) as executor:
        outcomes = list(executor.map(attempt, ranges))

    created = [booking for booking in outcomes if booking is not None]
    assert created
    stays = [DateRange(booking.check_in_date, booking.check_out_date) for booking in created]
    for index, left in enumerate(stays):
        for right in stays[index + 1:]:
            assert not left.overlaps(right)
    assert service.repository.count_bookings() == len(created)


def test_storage_trigger_rejects_overlap_that_skips_the_ledger(service, rooms):
    room_id = rooms["R101"].room_id
    _book(service, room_id, JUNE_1, JUNE_3)
    repository = service.repository

    with pytest.raises(ConflictError):
        with repository.transaction() as conn:
            draft = service.prepare_booking(
                conn,
                room_id=room_id,
                check_in_date=JUNE_2,
                check_out_date=JUNE_4,
                guest=GUEST,
                occupancy=TWO_ADULTS,
                now=service.now(),
            )
            repository.insert_booking(conn, draft)

    assert repository.count_bookings() == 1


def test_unavailable_dates_are_merged_and_clipped(service, rooms):
    room_id = rooms["R101"].room_id
    _book(service, room_id, JUNE_1, JUNE_3)
    _book(service, room_id, JUNE_3, JUNE_5)
    later = _book(service, room_id, date(2024, 6, 8), date(2024, 6, 12))
    cancelled = _book(service, room_id, date(2024, 6, 6), date(2024, 6, 7))
    service.cancel_booking(cancelled.booking_id, "duplicate")

    ranges = service.get_unavailable_dates(room_id, JUNE_2, date(2024, 6, 10))

    assert ranges == [
        DateRange(JUNE_2, JUNE_5),
        DateRange(later.check_in_date, date(2024, 6, 10)),
    ]


def test_unavailable_dates_rejects_empty_window(service, rooms):
    with pytest.raises(BookingValidationError):
        service.get_unavailable_dates(rooms["R101"].room_id, JUNE_3, JUNE_3)
