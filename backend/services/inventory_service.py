"""Room-date availability and conflict-checked reservation holds."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Optional

from backend.domain.errors import BookingValidationError, ConflictError, RoomNotFoundError
from backend.domain.models import Booking, DateRange
from backend.repository.hotel_repository import HotelRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _validate_range(check_in_date: date, check_out_date: date) -> None:
    if check_out_date <= check_in_date:
        raise BookingValidationError("check_out_date must be after check_in_date")


def merge_ranges(ranges: list[DateRange]) -> list[DateRange]:
    """Collapse overlapping or touching ranges into a sorted, disjoint list."""
    merged: list[DateRange] = []
    for item in sorted(ranges, key=lambda value: (value.start, value.end)):
        if merged and item.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = DateRange(start=last.start, end=max(last.end, item.end))
        else:
            merged.append(item)
    return merged


class InventoryLedger:
    """Answers availability from holding bookings and guards reservations.

    Holds are derived from bookings in PENDING, CONFIRMED or CHECKED_IN; no
    separate hold record exists. ``reserve`` and ``release`` run inside a
    transaction owned by the caller so a lifecycle transition and its
    inventory effect commit together.
    """

    def __init__(
        self,
        repository: Optional[HotelRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or HotelRepository(self._settings)

    def _ensure_room(self, room_id: int, conn: Optional[sqlite3.Connection] = None) -> None:
        if self._repository.get_room(room_id, conn=conn) is None:
            raise RoomNotFoundError(f"Room {room_id} does not exist")

    def find_conflicts(
        self,
        room_id: int,
        check_in_date: date,
        check_out_date: date,
        conn: Optional[sqlite3.Connection] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> list[str]:
        _validate_range(check_in_date, check_out_date)
        return self._repository.find_overlapping_booking_numbers(
            room_id,
            check_in_date,
            check_out_date,
            conn=conn,
            exclude_booking_id=exclude_booking_id,
        )

    def is_available(
        self,
        room_id: int,
        check_in_date: date,
        check_out_date: date,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        self._ensure_room(room_id, conn=conn)
        return not self.find_conflicts(room_id, check_in_date, check_out_date, conn=conn)

    def _ensure_free(
        self,
        conn: sqlite3.Connection,
        booking: Booking,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        conflicting = self.find_conflicts(
            booking.room_id,
            booking.check_in_date,
            booking.check_out_date,
            conn=conn,
            exclude_booking_id=exclude_booking_id,
        )
        if not conflicting:
            return
        logger.info(
            "Reservation conflict | room_id=%s | check_in=%s | check_out=%s | held_by=%s",
            booking.room_id,
            booking.check_in_date,
            booking.check_out_date,
            ",".join(conflicting),
        )
        raise ConflictError(
            room_id=booking.room_id,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            conflicting_booking_numbers=conflicting,
        )

    def reserve(self, conn: sqlite3.Connection, booking: Booking) -> Booking:
        """Re-check and insert ``booking`` inside the caller's write transaction."""
        self._ensure_free(conn, booking)

        booking_id = self._repository.insert_booking(conn, booking)
        stored = self._repository.get_booking(booking_id, conn=conn)
        assert stored is not None
        logger.info(
            "Inventory hold placed | booking_number=%s | room_id=%s | check_in=%s | check_out=%s",
            stored.booking_number,
            stored.room_id,
            stored.check_in_date,
            stored.check_out_date,
        )
        return stored

    def move(self, conn: sqlite3.Connection, booking: Booking) -> Booking:
        """Persist new dates for a held booking; its own current range is not a conflict."""
        self._ensure_free(conn, booking, exclude_booking_id=booking.booking_id)
        self._repository.update_booking(conn, booking)
        stored = self._repository.get_booking(booking.booking_id, conn=conn)
        assert stored is not None
        logger.info(
            "Inventory hold moved | booking_number=%s | room_id=%s | check_in=%s | check_out=%s",
            stored.booking_number,
            stored.room_id,
            stored.check_in_date,
            stored.check_out_date,
        )
        return stored

    def release(self, conn: sqlite3.Connection, booking: Booking) -> None:
        """Persist a booking that has left the holding statuses, freeing its range."""
        if booking.holds_inventory:
            raise ValueError(
                f"Booking {booking.booking_number} is {booking.status.value} and still holds inventory"
            )
        self._repository.update_booking(conn, booking)
        logger.info(
            "Inventory hold released | booking_number=%s | room_id=%s | status=%s",
            booking.booking_number,
            booking.room_id,
            booking.status.value,
        )

    def unavailable_dates(
        self,
        room_id: int,
        window_start: date,
        window_end: date,
    ) -> list[DateRange]:
        """Held ranges for a room, merged and clipped to ``[window_start, window_end)``."""
        if window_end <= window_start:
            raise BookingValidationError("window_end must be after window_start")
        self._ensure_room(room_id)
        held = self._repository.list_held_ranges(room_id, window_start, window_end)
        return [
            DateRange(start=max(item.start, window_start), end=min(item.end, window_end))
            for item in merge_ranges(held)
        ]
