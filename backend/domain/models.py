"""Domain models for rooms, bookings and their financial records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from backend.domain.financials import ZERO, FinancialBreakdown


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    CLEANING = "CLEANING"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    FAILED = "FAILED"


HOLDING_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN}
)
TERMINAL_STATUSES = frozenset(
    {
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
        BookingStatus.COMPLETED,
        BookingStatus.FAILED,
    }
)


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    E_WALLET = "E_WALLET"
    PAYPAL = "PAYPAL"


class PaymentKind(str, Enum):
    DEPOSIT = "DEPOSIT"
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


class ServiceChargeType(str, Enum):
    MINIBAR = "MINIBAR"
    LAUNDRY = "LAUNDRY"
    ROOM_SERVICE = "ROOM_SERVICE"
    SPA = "SPA"
    DINING = "DINING"
    PARKING = "PARKING"
    OTHER = "OTHER"


@dataclass(frozen=True)
class DateRange:
    """Half-open stay interval: the check-out night is not included."""

    start: date
    end: date

    @property
    def nights(self) -> int:
        return (self.end - self.start).days

    def overlaps(self, other: "DateRange") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Room:
    room_id: int
    room_number: str
    room_type: str
    price_per_night: Decimal
    capacity: int
    status: RoomStatus


@dataclass(frozen=True)
class GuestInfo:
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    national_id: Optional[str] = None


@dataclass(frozen=True)
class GuestVerification:
    full_name: str
    national_id: str
    phone: str


@dataclass(frozen=True)
class Occupancy:
    number_of_guests: int
    number_of_children: int = 0


@dataclass(frozen=True)
class ServiceCharge:
    charge_id: int
    charge_type: ServiceChargeType
    quantity: int
    unit_amount: Decimal
    total_amount: Decimal
    description: str
    charged_at: datetime


@dataclass(frozen=True)
class PaymentRecord:
    payment_id: int
    kind: PaymentKind
    amount: Decimal
    method: PaymentMethod
    transaction_id: Optional[str]
    recorded_at: datetime


@dataclass(frozen=True)
class Booking:
    booking_id: int
    booking_number: str
    group_booking_id: Optional[str]
    guest_id: Optional[str]
    guest: GuestInfo
    room_id: int
    room_number: str
    check_in_date: date
    check_out_date: date
    occupancy: Occupancy
    room_price_per_night: Decimal
    financials: FinancialBreakdown
    deposit_amount: Decimal
    payment_status: PaymentStatus
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    special_requests: Optional[str] = None
    admin_notes: Optional[str] = None
    deposit_method: Optional[PaymentMethod] = None
    deposit_transaction_id: Optional[str] = None
    guest_verified_at: Optional[datetime] = None
    cancellation_fee: Decimal = ZERO
    cancellation_reason: Optional[str] = None
    failure_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    room_cleaned: bool = False
    service_charges: tuple[ServiceCharge, ...] = ()
    payments: tuple[PaymentRecord, ...] = ()

    @property
    def stay(self) -> DateRange:
        return DateRange(self.check_in_date, self.check_out_date)

    @property
    def number_of_nights(self) -> int:
        return self.stay.nights

    @property
    def holds_inventory(self) -> bool:
        return self.status in HOLDING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def amount_paid(self) -> Decimal:
        """Net money received: deposits and payments minus refunds."""
        received = sum(
            (item.amount for item in self.payments if item.kind is not PaymentKind.REFUND),
            ZERO,
        )
        refunded = sum(
            (item.amount for item in self.payments if item.kind is PaymentKind.REFUND),
            ZERO,
        )
        return received - refunded

    @property
    def amount_due(self) -> Decimal:
        if self.status is BookingStatus.CANCELLED:
            return self.cancellation_fee
        return self.financials.total_amount

    @property
    def outstanding_balance(self) -> Decimal:
        return max(self.amount_due - self.amount_paid, ZERO)

    @property
    def can_cancel(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    def can_check_in(self, today: date) -> bool:
        return self.status is BookingStatus.CONFIRMED and self.check_in_date <= today

    @property
    def can_check_out(self) -> bool:
        return self.status is BookingStatus.CHECKED_IN

    @property
    def can_review(self) -> bool:
        return self.status in (BookingStatus.CHECKED_OUT, BookingStatus.COMPLETED)

    @property
    def can_add_service_charges(self) -> bool:
        return self.status is BookingStatus.CHECKED_IN


@dataclass(frozen=True)
class BookingSearchCriteria:
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    check_in_from: Optional[date] = None
    check_in_to: Optional[date] = None
    keyword: Optional[str] = None
    national_id: Optional[str] = None
    room_id: Optional[int] = None
    group_booking_id: Optional[str] = None
    page: int = 0
    size: int = 10
    sort_by: str = "created_at"
    sort_order: str = "desc"


@dataclass(frozen=True)
class BookingPage:
    items: list[Booking]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size
