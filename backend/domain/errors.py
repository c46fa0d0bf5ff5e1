"""Error taxonomy shared by the booking services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence


class BookingError(Exception):
    """Base class for recoverable booking failures surfaced to callers."""


class BookingNotFoundError(BookingError):
    """Raised when a booking id or number does not exist."""


class RoomNotFoundError(BookingError):
    """Raised when a room id does not exist in persisted state."""


class BookingValidationError(BookingError):
    """Raised when request input is malformed or violates a booking rule."""


class CheckInNotAllowedError(BookingValidationError):
    """Raised when check-in is attempted before the booked check-in date."""


class NoShowNotAllowedError(BookingValidationError):
    """Raised when no-show is attempted before the check-in date has passed."""


class GuestVerificationError(BookingValidationError):
    """Raised when check-in verification data is missing or does not match."""


class RefundNotAllowedError(BookingValidationError):
    """Raised when the payment state of a booking leaves nothing to refund."""


class ConflictError(BookingError):
    """Raised when a room is already held for an overlapping date range."""

    def __init__(
        self,
        room_id: int,
        check_in_date: date,
        check_out_date: date,
        conflicting_booking_numbers: Sequence[str],
    ) -> None:
        self.room_id = room_id
        self.check_in_date = check_in_date
        self.check_out_date = check_out_date
        self.conflicting_booking_numbers = list(conflicting_booking_numbers)
        held_by = ", ".join(self.conflicting_booking_numbers) or "a concurrent reservation"
        super().__init__(
            f"Room {room_id} is not available from {check_in_date.isoformat()} "
            f"to {check_out_date.isoformat()} (held by {held_by})"
        )


class InvalidTransitionError(BookingError):
    """Raised when an action is not permitted from the booking's current status."""

    def __init__(self, booking_number: str, current_status: str, action: str) -> None:
        self.booking_number = booking_number
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} booking {booking_number} while it is {current_status}"
        )


class UnsettledBalanceError(BookingError):
    """Raised when check-out is attempted before the booking is fully paid."""

    def __init__(self, booking_number: str, payment_status: str, outstanding: Decimal) -> None:
        self.booking_number = booking_number
        self.payment_status = payment_status
        self.outstanding = outstanding
        super().__init__(
            f"Booking {booking_number} has an unsettled balance of {outstanding} "
            f"(payment status {payment_status}); record payment before check-out"
        )


@dataclass(frozen=True)
class RoomConflict:
    room_id: int
    check_in_date: date
    check_out_date: date
    conflicting_booking_numbers: tuple[str, ...]


class GroupPartialFailureError(BookingError):
    """Raised when any room of a group request cannot be reserved.

    Nothing from the group is committed when this is raised.
    """

    def __init__(self, conflicts: Sequence[RoomConflict]) -> None:
        self.conflicts = list(conflicts)
        room_ids = ", ".join(str(conflict.room_id) for conflict in self.conflicts)
        super().__init__(
            f"Group booking rolled back; rooms unavailable: {room_ids}"
        )


class FinancialInvariantError(RuntimeError):
    """Raised when booking totals do not satisfy the reconciliation formula."""
