"""Booking state machine and payment status rules."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from backend.domain.errors import InvalidTransitionError
from backend.domain.financials import ZERO
from backend.domain.models import BookingStatus, PaymentStatus, TERMINAL_STATUSES


class BookingAction(str, Enum):
    CONFIRM = "confirm"
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"
    CANCEL = "cancel"
    NO_SHOW = "no-show"
    COMPLETE = "complete"
    MARK_FAILED = "mark-failed"
    UPDATE = "update"
    APPLY_DISCOUNT = "apply-discount"
    ADD_SERVICE_CHARGE = "add-service-charge"
    REMOVE_SERVICE_CHARGE = "remove-service-charge"
    RECORD_PAYMENT = "record-payment"
    REFUND = "refund"
    MARK_ROOM_CLEANED = "mark-room-cleaned"


_NON_TERMINAL = frozenset(BookingStatus) - TERMINAL_STATUSES

# action -> (statuses it may start from, status it moves to; None keeps the status)
_RULES: dict[BookingAction, tuple[frozenset[BookingStatus], BookingStatus | None]] = {
    BookingAction.CONFIRM: (frozenset({BookingStatus.PENDING}), BookingStatus.CONFIRMED),
    BookingAction.CHECK_IN: (frozenset({BookingStatus.CONFIRMED}), BookingStatus.CHECKED_IN),
    BookingAction.CHECK_OUT: (frozenset({BookingStatus.CHECKED_IN}), BookingStatus.CHECKED_OUT),
    BookingAction.CANCEL: (
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
        BookingStatus.CANCELLED,
    ),
    BookingAction.NO_SHOW: (frozenset({BookingStatus.CONFIRMED}), BookingStatus.NO_SHOW),
    BookingAction.COMPLETE: (frozenset({BookingStatus.CHECKED_OUT}), BookingStatus.COMPLETED),
    BookingAction.MARK_FAILED: (_NON_TERMINAL, BookingStatus.FAILED),
    BookingAction.UPDATE: (frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}), None),
    BookingAction.APPLY_DISCOUNT: (_NON_TERMINAL, None),
    BookingAction.ADD_SERVICE_CHARGE: (frozenset({BookingStatus.CHECKED_IN}), None),
    BookingAction.REMOVE_SERVICE_CHARGE: (
        frozenset({BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT}),
        None,
    ),
    BookingAction.RECORD_PAYMENT: (frozenset(BookingStatus) - {BookingStatus.FAILED}, None),
    BookingAction.REFUND: (
        frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
        None,
    ),
    BookingAction.MARK_ROOM_CLEANED: (
        frozenset({BookingStatus.CHECKED_OUT, BookingStatus.COMPLETED}),
        None,
    ),
}

LIFECYCLE_ACTIONS = tuple(action for action, (_, target) in _RULES.items() if target is not None)


def allowed_statuses(action: BookingAction) -> frozenset[BookingStatus]:
    return _RULES[action][0]


def is_allowed(status: BookingStatus, action: BookingAction) -> bool:
    return status in _RULES[action][0]


def ensure_allowed(
    booking_number: str,
    status: BookingStatus,
    action: BookingAction,
) -> BookingStatus:
    """Return the status after ``action`` or raise if the action is not permitted."""
    sources, target = _RULES[action]
    if status not in sources:
        raise InvalidTransitionError(
            booking_number=booking_number,
            current_status=status.value,
            action=action.value,
        )
    return target if target is not None else status


def resolve_payment_status(amount_paid: Decimal, amount_due: Decimal) -> PaymentStatus:
    """Compare recorded payments against the amount currently owed."""
    if amount_paid <= ZERO:
        return PaymentStatus.UNPAID
    if amount_paid < amount_due:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PAID
