"""Append/remove ledger of ad hoc charges incurred during a stay."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from backend.domain.errors import BookingValidationError
from backend.domain.financials import ZERO, to_money
from backend.domain.lifecycle import BookingAction, ensure_allowed
from backend.domain.models import Booking, ServiceCharge, ServiceChargeType
from backend.services.booking_service import BookingLifecycleService
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class ServiceChargeLedger:
    """Charges are never edited in place.

    Removal stamps ``removed_at`` on the row so the audit trail survives;
    indexes passed by callers address the active charges only, in the order
    they were added.
    """

    def __init__(self, lifecycle: BookingLifecycleService) -> None:
        self._lifecycle = lifecycle
        self._repository = lifecycle.repository

    def add_charge(
        self,
        booking_id: int,
        charge_type: ServiceChargeType,
        quantity: int,
        unit_amount: Decimal,
        description: str = "",
    ) -> Booking:
        now = self._lifecycle.now()
        amount = to_money(unit_amount)
        text = (description or "").strip()
        with self._repository.transaction() as conn:
            booking = self._lifecycle.load_booking(conn, booking_id)
            ensure_allowed(booking.booking_number, booking.status, BookingAction.ADD_SERVICE_CHARGE)
            if quantity < 1:
                raise BookingValidationError("quantity must be at least 1")
            if amount <= ZERO:
                raise BookingValidationError("charge amount must be positive")
            if charge_type is ServiceChargeType.OTHER and not text:
                raise BookingValidationError("description is required for OTHER charges")

            total = to_money(amount * quantity)
            self._repository.insert_service_charge(
                conn,
                booking.booking_id,
                charge_type,
                quantity,
                amount,
                total,
                text,
                now,
            )
            booking = self._lifecycle.load_booking(conn, booking_id)
            charged = self._lifecycle.persist(
                conn,
                replace(self._lifecycle.reconcile_booking(booking), updated_at=now),
            )
        logger.info(
            "Service charge added | booking_number=%s | type=%s | amount=%s | total=%s",
            charged.booking_number,
            charge_type.value,
            total,
            charged.financials.total_amount,
        )
        return charged

    def remove_charge(self, booking_id: int, charge_index: int) -> Booking:
        now = self._lifecycle.now()
        with self._repository.transaction() as conn:
            booking = self._lifecycle.load_booking(conn, booking_id)
            ensure_allowed(
                booking.booking_number,
                booking.status,
                BookingAction.REMOVE_SERVICE_CHARGE,
            )
            if not 0 <= charge_index < len(booking.service_charges):
                raise BookingValidationError(
                    f"charge index {charge_index} is out of range for booking "
                    f"{booking.booking_number} ({len(booking.service_charges)} charges)"
                )
            removed = booking.service_charges[charge_index]
            self._repository.mark_service_charge_removed(conn, removed.charge_id, now)
            booking = self._lifecycle.load_booking(conn, booking_id)
            corrected = self._lifecycle.persist(
                conn,
                replace(self._lifecycle.reconcile_booking(booking), updated_at=now),
            )
        logger.info(
            "Service charge removed | booking_number=%s | type=%s | amount=%s | total=%s",
            corrected.booking_number,
            removed.charge_type.value,
            removed.total_amount,
            corrected.financials.total_amount,
        )
        return corrected

    def list_charges(self, booking_id: int) -> list[ServiceCharge]:
        return list(self._lifecycle.get_booking(booking_id).service_charges)
