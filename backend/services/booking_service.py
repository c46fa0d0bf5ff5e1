"""Booking lifecycle engine: guarded transitions and their side effects."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Optional

from backend.domain.errors import (
    BookingNotFoundError,
    BookingValidationError,
    CheckInNotAllowedError,
    GuestVerificationError,
    InvalidTransitionError,
    NoShowNotAllowedError,
    RefundNotAllowedError,
    RoomNotFoundError,
    UnsettledBalanceError,
)
from backend.domain.financials import (
    ZERO,
    FinancialPolicy,
    cancellation_fee_for,
    deposit_amount_for,
    reconcile,
    to_money,
    validate_financial_policy,
)
from backend.domain.lifecycle import BookingAction, ensure_allowed, resolve_payment_status
from backend.domain.models import (
    Booking,
    BookingPage,
    BookingSearchCriteria,
    BookingStatus,
    DateRange,
    GuestInfo,
    GuestVerification,
    Occupancy,
    PaymentKind,
    PaymentMethod,
    PaymentStatus,
    Room,
    RoomStatus,
)
from backend.repository.hotel_repository import SORTABLE_FIELDS, HotelRepository
from backend.services.inventory_service import InventoryLedger
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

Clock = Callable[[], datetime]


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise BookingValidationError(f"{field_name} is required")
    return value.strip()


def generate_booking_number(today: date) -> str:
    return f"BK{today:%Y%m%d}{uuid.uuid4().hex[:8].upper()}"


class BookingLifecycleService:
    """Owns the booking state machine.

    Every public mutation opens one write transaction, evaluates its guards
    against the freshly loaded booking and only then writes. A failing guard
    raises before any write, so the rollback leaves the booking untouched.
    """

    def __init__(
        self,
        repository: Optional[HotelRepository] = None,
        inventory: Optional[InventoryLedger] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or HotelRepository(self._settings)
        self._inventory = inventory or InventoryLedger(
            repository=self._repository,
            settings=self._settings,
        )
        self._clock = clock or datetime.now
        self._policy = FinancialPolicy(
            tax_rate=self._settings.tax_rate,
            service_charge_rate=self._settings.service_charge_rate,
            deposit_rate=self._settings.deposit_rate,
        )
        validate_financial_policy(self._policy)

    @property
    def repository(self) -> HotelRepository:
        return self._repository

    @property
    def inventory(self) -> InventoryLedger:
        return self._inventory

    def now(self) -> datetime:
        return self._clock()

    # ----------------------------------------------------------- shared steps

    def load_booking(self, conn: sqlite3.Connection, booking_id: int) -> Booking:
        booking = self._repository.get_booking(booking_id, conn=conn)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} does not exist")
        return booking

    def persist(self, conn: sqlite3.Connection, booking: Booking) -> Booking:
        self._repository.update_booking(conn, booking)
        return self.load_booking(conn, booking.booking_id)

    def payment_status_for(self, booking: Booking) -> PaymentStatus:
        if booking.payment_status is PaymentStatus.REFUNDED:
            return PaymentStatus.REFUNDED
        return resolve_payment_status(booking.amount_paid, booking.amount_due)

    def reconcile_booking(self, booking: Booking, discount: Optional[Decimal] = None) -> Booking:
        """Recompute totals from the snapshotted price, active charges and discount."""
        breakdown = reconcile(
            room_price_per_night=booking.room_price_per_night,
            number_of_nights=booking.number_of_nights,
            tax_rate=self._policy.tax_rate,
            service_charge_rate=self._policy.service_charge_rate,
            additional_charges=[charge.total_amount for charge in booking.service_charges],
            discount=booking.financials.discount if discount is None else discount,
        )
        updated = replace(booking, financials=breakdown)
        return replace(updated, payment_status=self.payment_status_for(updated))

    def _validate_stay(self, check_in_date: date, check_out_date: date, today: date) -> None:
        if check_out_date <= check_in_date:
            raise BookingValidationError("check_out_date must be after check_in_date")
        if check_in_date < today:
            raise BookingValidationError("check_in_date cannot be in the past")
        nights = (check_out_date - check_in_date).days
        if nights < self._settings.min_nights:
            raise BookingValidationError(
                f"Stay must be at least {self._settings.min_nights} night(s)"
            )
        if nights > self._settings.max_nights:
            raise BookingValidationError(
                f"Stay cannot exceed {self._settings.max_nights} nights"
            )

    @staticmethod
    def _validate_occupancy(room: Room, occupancy: Occupancy) -> None:
        if occupancy.number_of_guests < 1:
            raise BookingValidationError("number_of_guests must be at least 1")
        if occupancy.number_of_children < 0:
            raise BookingValidationError("number_of_children cannot be negative")
        if occupancy.number_of_guests > room.capacity:
            raise BookingValidationError(
                f"Room {room.room_number} holds at most {room.capacity} guests"
            )

    def prepare_booking(
        self,
        conn: sqlite3.Connection,
        *,
        room_id: int,
        check_in_date: date,
        check_out_date: date,
        guest: GuestInfo,
        occupancy: Occupancy,
        now: datetime,
        group_booking_id: Optional[str] = None,
        guest_id: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> Booking:
        """Validate a reservation request and build the unsaved PENDING booking."""
        room = self._repository.get_room(room_id, conn=conn)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} does not exist")
        _require_text(guest.full_name, "guest full_name")
        self._validate_stay(check_in_date, check_out_date, now.date())
        self._validate_occupancy(room, occupancy)

        financials = reconcile(
            room_price_per_night=room.price_per_night,
            number_of_nights=(check_out_date - check_in_date).days,
            tax_rate=self._policy.tax_rate,
            service_charge_rate=self._policy.service_charge_rate,
        )
        return Booking(
            booking_id=0,
            booking_number=generate_booking_number(now.date()),
            group_booking_id=group_booking_id,
            guest_id=guest_id,
            guest=replace(guest, full_name=guest.full_name.strip()),
            room_id=room.room_id,
            room_number=room.room_number,
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            occupancy=occupancy,
            room_price_per_night=room.price_per_night,
            financials=financials,
            deposit_amount=deposit_amount_for(financials.total_amount, self._policy.deposit_rate),
            payment_status=PaymentStatus.UNPAID,
            status=BookingStatus.PENDING,
            created_at=now,
            updated_at=now,
            special_requests=special_requests,
        )

    # --------------------------------------------------------------- creation

    def create_booking(
        self,
        *,
        room_id: int,
        check_in_date: date,
        check_out_date: date,
        guest: GuestInfo,
        occupancy: Occupancy,
        guest_id: Optional[str] = None,
        special_requests: Optional[str] = None,
    ) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            draft = self.prepare_booking(
                conn,
                room_id=room_id,
                check_in_date=check_in_date,
                check_out_date=check_out_date,
                guest=guest,
                occupancy=occupancy,
                now=now,
                guest_id=guest_id,
                special_requests=special_requests,
            )
            booking = self._inventory.reserve(conn, draft)
        logger.info(
            "Booking created | booking_number=%s | room_id=%s | nights=%s | total=%s",
            booking.booking_number,
            booking.room_id,
            booking.number_of_nights,
            booking.financials.total_amount,
        )
        return booking

    def update_booking(
        self,
        booking_id: int,
        *,
        check_in_date: Optional[date] = None,
        check_out_date: Optional[date] = None,
        occupancy: Optional[Occupancy] = None,
        special_requests: Optional[str] = None,
    ) -> Booking:
        """Change the stay, occupancy or requests of a booking that has not started.

        New dates are re-checked against every other hold on the room and the
        totals, deposit and payment status are recomputed for the new nights.
        """
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            ensure_allowed(booking.booking_number, booking.status, BookingAction.UPDATE)
            new_check_in = check_in_date or booking.check_in_date
            new_check_out = check_out_date or booking.check_out_date
            dates_changed = (new_check_in, new_check_out) != (
                booking.check_in_date,
                booking.check_out_date,
            )
            if dates_changed:
                self._validate_stay(new_check_in, new_check_out, now.date())
                new_subtotal = to_money(
                    booking.room_price_per_night * (new_check_out - new_check_in).days
                )
                if booking.financials.discount > new_subtotal:
                    raise BookingValidationError(
                        f"discount {booking.financials.discount} exceeds new subtotal {new_subtotal}"
                    )
            if occupancy is not None:
                room = self._repository.get_room(booking.room_id, conn=conn)
                if room is None:
                    raise RoomNotFoundError(f"Room {booking.room_id} does not exist")
                self._validate_occupancy(room, occupancy)

            updated = replace(
                booking,
                check_in_date=new_check_in,
                check_out_date=new_check_out,
                occupancy=occupancy or booking.occupancy,
                special_requests=(
                    special_requests if special_requests is not None else booking.special_requests
                ),
                updated_at=now,
            )
            if dates_changed:
                updated = self.reconcile_booking(updated)
                updated = replace(
                    updated,
                    deposit_amount=deposit_amount_for(
                        updated.financials.total_amount,
                        self._policy.deposit_rate,
                    ),
                )
                updated = self._inventory.move(conn, updated)
            else:
                updated = self.persist(conn, updated)
        logger.info(
            "Booking updated | booking_number=%s | check_in=%s | check_out=%s | total=%s",
            updated.booking_number,
            updated.check_in_date,
            updated.check_out_date,
            updated.financials.total_amount,
        )
        return updated

    # ------------------------------------------------------------ transitions

    def confirm_booking(self, booking_id: int) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(booking.booking_number, booking.status, BookingAction.CONFIRM)
            confirmed = self.persist(
                conn,
                replace(booking, status=target, confirmed_at=now, updated_at=now),
            )
        logger.info("Booking confirmed | booking_number=%s", confirmed.booking_number)
        return confirmed

    def check_in(
        self,
        booking_id: int,
        *,
        deposit_method: PaymentMethod,
        guest_verification: GuestVerification,
        deposit_transaction_id: Optional[str] = None,
    ) -> Booking:
        now = self.now()
        today = now.date()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(booking.booking_number, booking.status, BookingAction.CHECK_IN)
            if booking.check_in_date > today:
                raise CheckInNotAllowedError(
                    f"Booking {booking.booking_number} cannot check in before "
                    f"{booking.check_in_date.isoformat()}"
                )
            if booking.check_out_date <= today:
                raise CheckInNotAllowedError(
                    f"Booking {booking.booking_number} stay ended on "
                    f"{booking.check_out_date.isoformat()}"
                )
            verified_guest = self._verify_guest(booking, guest_verification)

            deposit = min(booking.deposit_amount, booking.outstanding_balance)
            if deposit > ZERO:
                self._repository.insert_payment(
                    conn,
                    booking.booking_id,
                    PaymentKind.DEPOSIT,
                    deposit,
                    deposit_method,
                    deposit_transaction_id,
                    now,
                )
                booking = self.load_booking(conn, booking_id)

            checked_in = replace(
                booking,
                status=target,
                guest=verified_guest,
                guest_verified_at=now,
                deposit_method=deposit_method,
                deposit_transaction_id=deposit_transaction_id,
                checked_in_at=now,
                updated_at=now,
            )
            checked_in = replace(checked_in, payment_status=self.payment_status_for(checked_in))
            self._repository.update_room_status(conn, booking.room_id, RoomStatus.OCCUPIED)
            checked_in = self.persist(conn, checked_in)
        logger.info(
            "Booking checked in | booking_number=%s | deposit=%s | payment_status=%s",
            checked_in.booking_number,
            deposit,
            checked_in.payment_status.value,
        )
        return checked_in

    @staticmethod
    def _verify_guest(booking: Booking, verification: GuestVerification) -> GuestInfo:
        try:
            full_name = _require_text(verification.full_name, "verification full_name")
            national_id = _require_text(verification.national_id, "verification national_id")
            phone = _require_text(verification.phone, "verification phone")
        except BookingValidationError as exc:
            raise GuestVerificationError(str(exc)) from exc
        expected_id = booking.guest.national_id
        if expected_id and expected_id.strip() != national_id:
            logger.warning(
                "Guest verification mismatch | booking_number=%s",
                booking.booking_number,
            )
            raise GuestVerificationError(
                f"National ID does not match the one on booking {booking.booking_number}"
            )
        return replace(booking.guest, full_name=full_name, national_id=national_id, phone=phone)

    def check_out(self, booking_id: int) -> Booking:
        """Close the stay; refused while any balance is outstanding."""
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(booking.booking_number, booking.status, BookingAction.CHECK_OUT)
            settled = self.reconcile_booking(booking)
            if settled.payment_status is not PaymentStatus.PAID:
                logger.warning(
                    "Check-out refused | booking_number=%s | outstanding=%s",
                    booking.booking_number,
                    settled.outstanding_balance,
                )
                raise UnsettledBalanceError(
                    booking_number=booking.booking_number,
                    payment_status=settled.payment_status.value,
                    outstanding=settled.outstanding_balance,
                )
            self._repository.update_room_status(conn, booking.room_id, RoomStatus.CLEANING)
            checked_out = self.persist(
                conn,
                replace(settled, status=target, checked_out_at=now, updated_at=now),
            )
        logger.info(
            "Booking checked out | booking_number=%s | total=%s",
            checked_out.booking_number,
            checked_out.financials.total_amount,
        )
        return checked_out

    def cancel_booking(self, booking_id: int, reason: str) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(booking.booking_number, booking.status, BookingAction.CANCEL)
            reason_text = _require_text(reason, "cancellation reason")
            fee = cancellation_fee_for(
                room_price_per_night=booking.room_price_per_night,
                total_amount=booking.financials.total_amount,
                check_in_at=datetime.combine(
                    booking.check_in_date,
                    time(hour=self._settings.check_in_hour),
                ),
                cancelled_at=now,
                free_cancellation_hours=self._settings.free_cancellation_hours,
            )
            cancelled = replace(
                booking,
                status=target,
                cancellation_fee=fee,
                cancellation_reason=reason_text,
                cancelled_at=now,
                updated_at=now,
            )
            cancelled = replace(cancelled, payment_status=self.payment_status_for(cancelled))
            self._inventory.release(conn, cancelled)
            cancelled = self.load_booking(conn, booking_id)
        logger.info(
            "Booking cancelled | booking_number=%s | fee=%s | payment_status=%s",
            cancelled.booking_number,
            fee,
            cancelled.payment_status.value,
        )
        return cancelled

    def mark_no_show(self, booking_id: int) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(booking.booking_number, booking.status, BookingAction.NO_SHOW)
            if booking.check_in_date >= now.date():
                raise NoShowNotAllowedError(
                    f"Booking {booking.booking_number} check-in date "
                    f"{booking.check_in_date.isoformat()} has not passed"
                )
            self._inventory.release(conn, replace(booking, status=target, updated_at=now))
            no_show = self.load_booking(conn, booking_id)
        logger.info("Booking marked no-show | booking_number=%s", no_show.booking_number)
        return no_show

    def sweep_no_shows(self) -> list[Booking]:
        """Mark every confirmed booking whose check-in date has passed as NO_SHOW."""
        today = self.now().date()
        swept: list[Booking] = []
        for booking_id in self._repository.list_overdue_confirmed_booking_ids(today):
            try:
                swept.append(self.mark_no_show(booking_id))
            except (InvalidTransitionError, NoShowNotAllowedError) as exc:
                # Booking changed between listing and marking.
                logger.warning(
                    "No-show sweep skipped booking | booking_id=%s | reason=%s",
                    booking_id,
                    exc,
                )
        logger.info("No-show sweep completed | date=%s | marked=%s", today, len(swept))
        return swept

    def complete_booking(self, booking_id: int) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(booking.booking_number, booking.status, BookingAction.COMPLETE)
            completed = self.persist(conn, replace(booking, status=target, updated_at=now))
        logger.info("Booking completed | booking_number=%s", completed.booking_number)
        return completed

    def mark_failed(self, booking_id: int, reason: str) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            target = ensure_allowed(
                booking.booking_number,
                booking.status,
                BookingAction.MARK_FAILED,
            )
            failed = replace(
                booking,
                status=target,
                failure_reason=_require_text(reason, "failure reason"),
                updated_at=now,
            )
            if booking.status is BookingStatus.CHECKED_IN:
                # The guest was in the room; it needs housekeeping before resale.
                self._repository.update_room_status(conn, booking.room_id, RoomStatus.CLEANING)
            if booking.holds_inventory:
                self._inventory.release(conn, failed)
            else:
                self._repository.update_booking(conn, failed)
            failed = self.load_booking(conn, booking_id)
        logger.warning(
            "Booking marked failed | booking_number=%s | previous_status=%s | reason=%s",
            failed.booking_number,
            booking.status.value,
            failed.failure_reason,
        )
        return failed

    # -------------------------------------------------------------- financial

    def apply_discount(self, booking_id: int, amount: Decimal) -> Booking:
        """Set the booking discount; it replaces any earlier discount."""
        now = self.now()
        discount = to_money(amount)
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            ensure_allowed(booking.booking_number, booking.status, BookingAction.APPLY_DISCOUNT)
            if discount < ZERO:
                raise BookingValidationError("discount cannot be negative")
            if discount > booking.financials.subtotal:
                raise BookingValidationError(
                    f"discount {discount} exceeds subtotal {booking.financials.subtotal}"
                )
            discounted = self.reconcile_booking(booking, discount=discount)
            discounted = self.persist(conn, replace(discounted, updated_at=now))
        logger.info(
            "Discount applied | booking_number=%s | discount=%s | total=%s",
            discounted.booking_number,
            discount,
            discounted.financials.total_amount,
        )
        return discounted

    def record_payment(
        self,
        booking_id: int,
        amount: Decimal,
        method: PaymentMethod,
        transaction_id: Optional[str] = None,
    ) -> Booking:
        """Record a payment outcome reported by the payment collaborator."""
        now = self.now()
        paid_amount = to_money(amount)
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            ensure_allowed(booking.booking_number, booking.status, BookingAction.RECORD_PAYMENT)
            if booking.payment_status is PaymentStatus.REFUNDED:
                raise BookingValidationError(
                    f"Booking {booking.booking_number} has been refunded"
                )
            if paid_amount <= ZERO:
                raise BookingValidationError("payment amount must be positive")
            if paid_amount > booking.outstanding_balance:
                raise BookingValidationError(
                    f"payment {paid_amount} exceeds outstanding balance "
                    f"{booking.outstanding_balance}"
                )
            self._repository.insert_payment(
                conn,
                booking.booking_id,
                PaymentKind.PAYMENT,
                paid_amount,
                method,
                transaction_id,
                now,
            )
            booking = self.load_booking(conn, booking_id)
            paid = self.persist(
                conn,
                replace(booking, payment_status=self.payment_status_for(booking), updated_at=now),
            )
        logger.info(
            "Payment recorded | booking_number=%s | amount=%s | method=%s | payment_status=%s",
            paid.booking_number,
            paid_amount,
            method.value,
            paid.payment_status.value,
        )
        return paid

    def refund(self, booking_id: int, method: Optional[PaymentMethod] = None) -> Booking:
        """Return the net amount paid minus what the booking retains."""
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            ensure_allowed(booking.booking_number, booking.status, BookingAction.REFUND)
            if booking.payment_status not in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_PAID):
                raise RefundNotAllowedError(
                    f"Booking {booking.booking_number} payment status is "
                    f"{booking.payment_status.value}; nothing to refund"
                )
            retained = booking.cancellation_fee if booking.status is BookingStatus.CANCELLED else ZERO
            refundable = booking.amount_paid - retained
            if refundable <= ZERO:
                raise RefundNotAllowedError(
                    f"Booking {booking.booking_number} has no refundable amount"
                )
            refund_method = method or self._last_payment_method(booking)
            self._repository.insert_payment(
                conn,
                booking.booking_id,
                PaymentKind.REFUND,
                refundable,
                refund_method,
                None,
                now,
            )
            booking = self.load_booking(conn, booking_id)
            refunded = self.persist(
                conn,
                replace(booking, payment_status=PaymentStatus.REFUNDED, updated_at=now),
            )
        logger.info(
            "Booking refunded | booking_number=%s | amount=%s | retained=%s",
            refunded.booking_number,
            refundable,
            retained,
        )
        return refunded

    @staticmethod
    def _last_payment_method(booking: Booking) -> PaymentMethod:
        for item in reversed(booking.payments):
            if item.kind is not PaymentKind.REFUND:
                return item.method
        return PaymentMethod.CASH

    # ----------------------------------------------------------------- admin

    def add_admin_notes(self, booking_id: int, notes: str) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            noted = self.persist(
                conn,
                replace(booking, admin_notes=_require_text(notes, "admin notes"), updated_at=now),
            )
        logger.info("Admin notes updated | booking_number=%s", noted.booking_number)
        return noted

    def mark_room_cleaned(self, booking_id: int) -> Booking:
        now = self.now()
        with self._repository.transaction() as conn:
            booking = self.load_booking(conn, booking_id)
            ensure_allowed(booking.booking_number, booking.status, BookingAction.MARK_ROOM_CLEANED)
            self._repository.update_room_status(conn, booking.room_id, RoomStatus.AVAILABLE)
            cleaned = self.persist(conn, replace(booking, room_cleaned=True, updated_at=now))
        logger.info(
            "Room cleaned | booking_number=%s | room_id=%s",
            cleaned.booking_number,
            cleaned.room_id,
        )
        return cleaned

    # ----------------------------------------------------------------- reads

    def get_booking(self, booking_id: int) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} does not exist")
        return booking

    def get_booking_by_number(self, booking_number: str) -> Booking:
        booking = self._repository.get_booking_by_number(booking_number.strip())
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_number} does not exist")
        return booking

    def get_group_bookings(self, group_booking_id: str) -> list[Booking]:
        bookings = self._repository.list_group_bookings(group_booking_id)
        if not bookings:
            raise BookingNotFoundError(f"Group booking {group_booking_id} does not exist")
        return bookings

    def check_availability(self, room_id: int, check_in_date: date, check_out_date: date) -> bool:
        return self._inventory.is_available(room_id, check_in_date, check_out_date)

    def get_unavailable_dates(
        self,
        room_id: int,
        window_start: date,
        window_end: date,
    ) -> list[DateRange]:
        return self._inventory.unavailable_dates(room_id, window_start, window_end)

    def search_bookings(self, criteria: BookingSearchCriteria) -> BookingPage:
        if criteria.page < 0:
            raise BookingValidationError("page cannot be negative")
        if criteria.size < 1:
            raise BookingValidationError("size must be at least 1")
        if criteria.sort_by not in SORTABLE_FIELDS:
            raise BookingValidationError(
                f"sort_by must be one of: {', '.join(SORTABLE_FIELDS)}"
            )
        sort_order = criteria.sort_order.lower()
        if sort_order not in ("asc", "desc"):
            raise BookingValidationError("sort_order must be 'asc' or 'desc'")
        if (
            criteria.check_in_from is not None
            and criteria.check_in_to is not None
            and criteria.check_in_from > criteria.check_in_to
        ):
            raise BookingValidationError("check_in_from must not be after check_in_to")
        normalized = replace(
            criteria,
            size=min(criteria.size, self._settings.search_max_page_size),
            sort_order=sort_order,
        )
        return self._repository.search_bookings(normalized)
