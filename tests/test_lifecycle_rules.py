"""Tests for the booking state machine table.

Every (status, action) pair is checked against the documented transitions.
"""

from __future__ import annotations

import pytest

from backend.domain.errors import InvalidTransitionError
from backend.domain.lifecycle import (
    LIFECYCLE_ACTIONS,
    BookingAction,
    ensure_allowed,
    is_allowed,
)
from backend.domain.models import TERMINAL_STATUSES, BookingStatus


VALID_TRANSITIONS = {
    (BookingStatus.PENDING, BookingAction.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.CHECK_IN): BookingStatus.CHECKED_IN,
    (BookingStatus.CONFIRMED, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.NO_SHOW): BookingStatus.NO_SHOW,
    (BookingStatus.CHECKED_IN, BookingAction.CHECK_OUT): BookingStatus.CHECKED_OUT,
    (BookingStatus.CHECKED_OUT, BookingAction.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.PENDING, BookingAction.MARK_FAILED): BookingStatus.FAILED,
    (BookingStatus.CONFIRMED, BookingAction.MARK_FAILED): BookingStatus.FAILED,
    (BookingStatus.CHECKED_IN, BookingAction.MARK_FAILED): BookingStatus.FAILED,
    (BookingStatus.CHECKED_OUT, BookingAction.MARK_FAILED): BookingStatus.FAILED,
}


@pytest.mark.parametrize("status", list(BookingStatus))
@pytest.mark.parametrize("action", LIFECYCLE_ACTIONS)
def test_lifecycle_pair_matches_transition_table(
    status: BookingStatus,
    action: BookingAction,
) -> None:
    expected = VALID_TRANSITIONS.get((status, action))
    if expected is None:
        with pytest.raises(InvalidTransitionError) as excinfo:
            ensure_allowed("BK-TEST", status, action)
        assert excinfo.value.current_status == status.value
        assert excinfo.value.action == action.value
    else:
        assert ensure_allowed("BK-TEST", status, action) is expected


def test_lifecycle_actions_cover_every_transition() -> None:
    assert set(LIFECYCLE_ACTIONS) == {action for _, action in VALID_TRANSITIONS}


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
def test_terminal_status_has_no_outgoing_transition(status: BookingStatus) -> None:
    assert not any(is_allowed(status, action) for action in LIFECYCLE_ACTIONS)


def test_non_lifecycle_action_keeps_status() -> None:
    assert ensure_allowed("BK-TEST", BookingStatus.CHECKED_IN, BookingAction.ADD_SERVICE_CHARGE) is (
        BookingStatus.CHECKED_IN
    )
    assert ensure_allowed("BK-TEST", BookingStatus.CANCELLED, BookingAction.REFUND) is (
        BookingStatus.CANCELLED
    )
    assert ensure_allowed("BK-TEST", BookingStatus.CONFIRMED, BookingAction.UPDATE) is (
        BookingStatus.CONFIRMED
    )


@pytest.mark.parametrize(
    ("status", "action"),
    [
        (BookingStatus.PENDING, BookingAction.ADD_SERVICE_CHARGE),
        (BookingStatus.CHECKED_OUT, BookingAction.ADD_SERVICE_CHARGE),
        (BookingStatus.CONFIRMED, BookingAction.REFUND),
        (BookingStatus.CHECKED_IN, BookingAction.MARK_ROOM_CLEANED),
        (BookingStatus.FAILED, BookingAction.RECORD_PAYMENT),
        (BookingStatus.COMPLETED, BookingAction.APPLY_DISCOUNT),
        (BookingStatus.CHECKED_IN, BookingAction.UPDATE),
        (BookingStatus.CANCELLED, BookingAction.UPDATE),
    ],
)
def test_non_lifecycle_action_rejected_outside_its_statuses(
    status: BookingStatus,
    action: BookingAction,
) -> None:
    with pytest.raises(InvalidTransitionError):
        ensure_allowed("BK-TEST", status, action)
