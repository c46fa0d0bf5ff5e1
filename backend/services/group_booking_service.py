"""All-or-nothing reservation of several rooms for one party."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from backend.domain.errors import BookingValidationError, GroupPartialFailureError, RoomConflict
from backend.domain.models import Booking, GuestInfo, Occupancy
from backend.services.booking_service import BookingLifecycleService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class GroupRoomRequest:
    room_id: int
    check_in_date: date
    check_out_date: date
    occupancy: Occupancy


def generate_group_booking_id() -> str:
    return f"GRP{uuid.uuid4().hex[:8].upper()}"


class GroupReservationCoordinator:
    """Reserves every requested room inside a single write transaction.

    Each room is checked against committed holds and against the rooms
    already placed earlier in the same request. If any room conflicts, the
    transaction is rolled back, so no booking of the group survives.
    """

    def __init__(
        self,
        lifecycle: BookingLifecycleService,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._lifecycle = lifecycle
        self._repository = lifecycle.repository
        self._inventory = lifecycle.inventory

    def _validate_size(self, requests: Sequence[GroupRoomRequest]) -> None:
        minimum = self._settings.group_min_rooms
        maximum = self._settings.group_max_rooms
        if not minimum <= len(requests) <= maximum:
            raise BookingValidationError(
                f"Group booking must contain between {minimum} and {maximum} rooms"
            )

    def create_group_booking(
        self,
        requests: Sequence[GroupRoomRequest],
        guest: GuestInfo,
        guest_id: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> list[Booking]:
        self._validate_size(requests)
        group_booking_id = generate_group_booking_id()
        now = self._lifecycle.now()

        with self._repository.transaction() as conn:
            bookings: list[Booking] = []
            conflicts: list[RoomConflict] = []
            for request in requests:
                draft = self._lifecycle.prepare_booking(
                    conn,
                    room_id=request.room_id,
                    check_in_date=request.check_in_date,
                    check_out_date=request.check_out_date,
                    guest=guest,
                    occupancy=request.occupancy,
                    now=now,
                    group_booking_id=group_booking_id,
                    guest_id=guest_id,
                    special_requests=special_requests,
                )
                held_by = self._inventory.find_conflicts(
                    request.room_id,
                    request.check_in_date,
                    request.check_out_date,
                    conn=conn,
                )
                if held_by:
                    conflicts.append(
                        RoomConflict(
                            room_id=request.room_id,
                            check_in_date=request.check_in_date,
                            check_out_date=request.check_out_date,
                            conflicting_booking_numbers=tuple(held_by),
                        )
                    )
                    continue
                bookings.append(self._inventory.reserve(conn, draft))

            if conflicts:
                logger.warning(
                    "Group booking rolled back | group_booking_id=%s | rooms=%s | conflicts=%s",
                    group_booking_id,
                    len(requests),
                    ",".join(str(conflict.room_id) for conflict in conflicts),
                )
                raise GroupPartialFailureError(conflicts)

        logger.info(
            "Group booking created | group_booking_id=%s | rooms=%s",
            group_booking_id,
            len(bookings),
        )
        return bookings
