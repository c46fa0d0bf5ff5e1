from __future__ import annotations

from datetime import date

import pytest
from conftest import GUEST, TWO_ADULTS

from backend.domain.errors import BookingValidationError, GroupPartialFailureError, RoomNotFoundError
from backend.domain.models import BookingStatus
from backend.services.group_booking_service import GroupReservationCoordinator, GroupRoomRequest


JUNE_1 = date(2024, 6, 1)
JUNE_3 = date(2024, 6, 3)


def _coordinator(service, settings) -> GroupReservationCoordinator:
    return GroupReservationCoordinator(lifecycle=service, settings=settings)


def _request(room_id: int, check_in: date = JUNE_1, check_out: date = JUNE_3) -> GroupRoomRequest:
    return GroupRoomRequest(
        room_id=room_id,
        check_in_date=check_in,
        check_out_date=check_out,
        occupancy=TWO_ADULTS,
    )


def test_group_booking_creates_every_room_with_shared_id(service, settings, rooms):
    coordinator = _coordinator(service, settings)

    bookings = coordinator.create_group_booking(
        [_request(room.room_id) for room in rooms.values()],
        guest=GUEST,
    )

    assert len(bookings) == 3
    group_ids = {booking.group_booking_id for booking in bookings}
    assert len(group_ids) == 1
    group_booking_id = group_ids.pop()
    assert group_booking_id.startswith("GRP") and len(group_booking_id) == 11
    assert all(booking.status is BookingStatus.PENDING for booking in bookings)
    assert [booking.booking_id for booking in service.get_group_bookings(group_booking_id)] == [
        booking.booking_id for booking in bookings
    ]


def test_group_rolls_back_when_one_room_is_held(service, settings, rooms):
    held = service.create_booking(
        room_id=rooms["R102"].room_id,
        check_in_date=JUNE_1,
        check_out_date=JUNE_3,
        guest=GUEST,
        occupancy=TWO_ADULTS,
    )
    coordinator = _coordinator(service, settings)

    with pytest.raises(GroupPartialFailureError) as excinfo:
        coordinator.create_group_booking(
            [_request(room.room_id) for room in rooms.values()],
            guest=GUEST,
        )

    conflicts = excinfo.value.conflicts
    assert [conflict.room_id for conflict in conflicts] == [rooms["R102"].room_id]
    assert conflicts[0].conflicting_booking_numbers == (held.booking_number,)
    assert service.repository.count_bookings() == 1
    assert service.check_availability(rooms["R101"].room_id, JUNE_1, JUNE_3) is True
    assert service.check_availability(rooms["R103"].room_id, JUNE_1, JUNE_3) is True


def test_group_reports_every_conflicting_room(service, settings, rooms):
    for key in ("R101", "R103"):
        service.create_booking(
            room_id=rooms[key].room_id,
            check_in_date=JUNE_1,
            check_out_date=JUNE_3,
            guest=GUEST,
            occupancy=TWO_ADULTS,
        )

    with pytest.raises(GroupPartialFailureError) as excinfo:
        _coordinator(service, settings).create_group_booking(
            [_request(room.room_id) for room in rooms.values()],
            guest=GUEST,
        )

    assert {conflict.room_id for conflict in excinfo.value.conflicts} == {
        rooms["R101"].room_id,
        rooms["R103"].room_id,
    }
    assert service.repository.count_bookings() == 2


def test_group_overlapping_itself_is_rejected(service, settings, rooms):
    room_id = rooms["R101"].room_id

    with pytest.raises(GroupPartialFailureError):
        _coordinator(service, settings).create_group_booking(
            [_request(room_id, JUNE_1, JUNE_3), _request(room_id, date(2024, 6, 2), date(2024, 6, 4))],
            guest=GUEST,
        )

    assert service.repository.count_bookings() == 0


def test_group_with_per_room_ranges(service, settings, rooms):
    room_id = rooms["R101"].room_id

    bookings = _coordinator(service, settings).create_group_booking(
        [_request(room_id, JUNE_1, JUNE_3), _request(room_id, JUNE_3, date(2024, 6, 5))],
        guest=GUEST,
    )

    assert [booking.check_in_date for booking in bookings] == [JUNE_1, JUNE_3]


def test_group_below_minimum_size_is_rejected(service, settings, rooms):
    with pytest.raises(BookingValidationError):
        _coordinator(service, settings).create_group_booking(
            [_request(rooms["R101"].room_id)],
            guest=GUEST,
        )


def test_group_with_unknown_room_creates_nothing(service, settings, rooms):
    with pytest.raises(RoomNotFoundError):
        _coordinator(service, settings).create_group_booking(
            [_request(rooms["R101"].room_id), _request(999)],
            guest=GUEST,
        )

    assert service.repository.count_bookings() == 0
