"""HTTP controller layer for guest-facing availability and booking endpoints."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from backend.controllers.dependencies import (
    booking_error_to_http,
    get_booking_service,
    get_group_coordinator,
)
from backend.domain.errors import BookingError
from backend.domain.models import (
    Booking,
    BookingStatus,
    GuestInfo,
    Occupancy,
    PaymentKind,
    PaymentMethod,
    PaymentStatus,
    ServiceChargeType,
)
from backend.services.booking_service import BookingLifecycleService
from backend.services.group_booking_service import GroupReservationCoordinator, GroupRoomRequest
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["bookings"])


class GuestPayload(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=254)
    phone: Optional[str] = Field(default=None, max_length=40)
    national_id: Optional[str] = Field(default=None, max_length=40)

    def to_domain(self) -> GuestInfo:
        return GuestInfo(
            full_name=self.full_name,
            email=self.email,
            phone=self.phone,
            national_id=self.national_id.strip() if self.national_id else None,
        )


class StayPayload(BaseModel):
    room_id: int = Field(gt=0)
    check_in_date: date
    check_out_date: date
    number_of_guests: int = Field(ge=1)
    number_of_children: int = Field(default=0, ge=0)

    @field_validator("check_out_date")
    @classmethod
    def validate_check_out_after_check_in(cls, value: date, info: ValidationInfo) -> date:
        check_in_date = info.data.get("check_in_date")
        if check_in_date is not None and value <= check_in_date:
            raise ValueError("check_out_date must be after check_in_date")
        return value

    def occupancy(self) -> Occupancy:
        return Occupancy(
            number_of_guests=self.number_of_guests,
            number_of_children=self.number_of_children,
        )


class CreateBookingRequest(StayPayload):
    guest: GuestPayload
    guest_id: Optional[str] = Field(default=None, max_length=64)
    special_requests: Optional[str] = Field(default=None, max_length=1000)


class CreateGroupBookingRequest(BaseModel):
    rooms: list[StayPayload] = Field(min_length=1)
    guest: GuestPayload
    guest_id: Optional[str] = Field(default=None, max_length=64)
    special_requests: Optional[str] = Field(default=None, max_length=1000)


class CancelBookingRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class UpdateBookingRequest(BaseModel):
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    number_of_guests: Optional[int] = Field(default=None, ge=1)
    number_of_children: Optional[int] = Field(default=None, ge=0)
    special_requests: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("check_out_date")
    @classmethod
    def validate_check_out_after_check_in(
        cls,
        value: Optional[date],
        info: ValidationInfo,
    ) -> Optional[date]:
        check_in_date = info.data.get("check_in_date")
        if value is not None and check_in_date is not None and value <= check_in_date:
            raise ValueError("check_out_date must be after check_in_date")
        return value

    @field_validator("number_of_children")
    @classmethod
    def validate_children_with_guests(
        cls,
        value: Optional[int],
        info: ValidationInfo,
    ) -> Optional[int]:
        if value is not None and info.data.get("number_of_guests") is None:
            raise ValueError("number_of_guests is required when changing number_of_children")
        return value

    def occupancy(self) -> Optional[Occupancy]:
        if self.number_of_guests is None:
            return None
        return Occupancy(
            number_of_guests=self.number_of_guests,
            number_of_children=self.number_of_children or 0,
        )


class ServiceChargeResponse(BaseModel):
    charge_type: ServiceChargeType
    quantity: int = Field(ge=1)
    unit_amount: Decimal
    total_amount: Decimal
    description: str
    charged_at: datetime


class PaymentResponse(BaseModel):
    kind: PaymentKind
    amount: Decimal
    method: PaymentMethod
    transaction_id: Optional[str]
    recorded_at: datetime


class BookingResponse(BaseModel):
    """Output DTO carrying totals, payment state and client convenience flags."""

    booking_id: int
    booking_number: str
    group_booking_id: Optional[str]
    guest_id: Optional[str]
    guest_full_name: str
    guest_email: Optional[str]
    guest_phone: Optional[str]
    guest_national_id: Optional[str]
    room_id: int
    room_number: str
    check_in_date: date
    check_out_date: date
    number_of_nights: int = Field(ge=1)
    number_of_guests: int = Field(ge=1)
    number_of_children: int = Field(ge=0)
    room_price_per_night: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    service_charge: Decimal
    additional_charges_total: Decimal
    discount: Decimal
    total_amount: Decimal
    deposit_amount: Decimal
    deposit_method: Optional[PaymentMethod]
    amount_paid: Decimal
    outstanding_balance: Decimal
    cancellation_fee: Decimal
    payment_status: PaymentStatus
    status: BookingStatus
    special_requests: Optional[str]
    admin_notes: Optional[str]
    cancellation_reason: Optional[str]
    failure_reason: Optional[str]
    room_cleaned: bool
    created_at: datetime
    confirmed_at: Optional[datetime]
    checked_in_at: Optional[datetime]
    checked_out_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    can_cancel: bool
    can_check_in: bool
    can_check_out: bool
    can_review: bool
    can_add_service_charges: bool
    service_charges: list[ServiceChargeResponse]
    payments: list[PaymentResponse]


class AvailabilityResponse(BaseModel):
    room_id: int
    check_in_date: date
    check_out_date: date
    available: bool


class DateRangeResponse(BaseModel):
    start: date
    end: date


class UnavailableDatesResponse(BaseModel):
    room_id: int
    window_start: date
    window_end: date
    unavailable: list[DateRangeResponse]


def booking_response(booking: Booking, today: date) -> BookingResponse:
    financials = booking.financials
    return BookingResponse(
        booking_id=booking.booking_id,
        booking_number=booking.booking_number,
        group_booking_id=booking.group_booking_id,
        guest_id=booking.guest_id,
        guest_full_name=booking.guest.full_name,
        guest_email=booking.guest.email,
        guest_phone=booking.guest.phone,
        guest_national_id=booking.guest.national_id,
        room_id=booking.room_id,
        room_number=booking.room_number,
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        number_of_nights=booking.number_of_nights,
        number_of_guests=booking.occupancy.number_of_guests,
        number_of_children=booking.occupancy.number_of_children,
        room_price_per_night=booking.room_price_per_night,
        subtotal=financials.subtotal,
        tax_amount=financials.tax_amount,
        service_charge=financials.service_charge,
        additional_charges_total=financials.additional_charges_total,
        discount=financials.discount,
        total_amount=financials.total_amount,
        deposit_amount=booking.deposit_amount,
        deposit_method=booking.deposit_method,
        amount_paid=booking.amount_paid,
        outstanding_balance=booking.outstanding_balance,
        cancellation_fee=booking.cancellation_fee,
        payment_status=booking.payment_status,
        status=booking.status,
        special_requests=booking.special_requests,
        admin_notes=booking.admin_notes,
        cancellation_reason=booking.cancellation_reason,
        failure_reason=booking.failure_reason,
        room_cleaned=booking.room_cleaned,
        created_at=booking.created_at,
        confirmed_at=booking.confirmed_at,
        checked_in_at=booking.checked_in_at,
        checked_out_at=booking.checked_out_at,
        cancelled_at=booking.cancelled_at,
        can_cancel=booking.can_cancel,
        can_check_in=booking.can_check_in(today),
        can_check_out=booking.can_check_out,
        can_review=booking.can_review,
        can_add_service_charges=booking.can_add_service_charges,
        service_charges=[
            ServiceChargeResponse(
                charge_type=charge.charge_type,
                quantity=charge.quantity,
                unit_amount=charge.unit_amount,
                total_amount=charge.total_amount,
                description=charge.description,
                charged_at=charge.charged_at,
            )
            for charge in booking.service_charges
        ],
        payments=[
            PaymentResponse(
                kind=item.kind,
                amount=item.amount,
                method=item.method,
                transaction_id=item.transaction_id,
                recorded_at=item.recorded_at,
            )
            for item in booking.payments
        ],
    )


@router.get(
    "/rooms/{room_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
def check_availability(
    room_id: int,
    check_in_date: date = Query(...),
    check_out_date: date = Query(...),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> AvailabilityResponse:
    try:
        available = service.check_availability(room_id, check_in_date, check_out_date)
        return AvailabilityResponse(
            room_id=room_id,
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            available=available,
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected availability check failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check availability",
        ) from exc


@router.get(
    "/rooms/{room_id}/unavailable-dates",
    response_model=UnavailableDatesResponse,
    status_code=status.HTTP_200_OK,
)
def unavailable_dates(
    room_id: int,
    window_start: date = Query(...),
    window_end: date = Query(...),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> UnavailableDatesResponse:
    """Calendar view: merged held ranges within the requested window."""
    try:
        ranges = service.get_unavailable_dates(room_id, window_start, window_end)
        return UnavailableDatesResponse(
            room_id=room_id,
            window_start=window_start,
            window_end=window_end,
            unavailable=[DateRangeResponse(start=item.start, end=item.end) for item in ranges],
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected unavailable-dates failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load unavailable dates",
        ) from exc


@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    payload: CreateBookingRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.create_booking(
            room_id=payload.room_id,
            check_in_date=payload.check_in_date,
            check_out_date=payload.check_out_date,
            guest=payload.guest.to_domain(),
            occupancy=payload.occupancy(),
            guest_id=payload.guest_id,
            special_requests=payload.special_requests,
        )
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.post(
    "/bookings/group",
    response_model=list[BookingResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_group_booking(
    payload: CreateGroupBookingRequest,
    coordinator: GroupReservationCoordinator = Depends(get_group_coordinator),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> list[BookingResponse]:
    try:
        bookings = coordinator.create_group_booking(
            [
                GroupRoomRequest(
                    room_id=item.room_id,
                    check_in_date=item.check_in_date,
                    check_out_date=item.check_out_date,
                    occupancy=item.occupancy(),
                )
                for item in payload.rooms
            ],
            guest=payload.guest.to_domain(),
            guest_id=payload.guest_id,
            special_requests=payload.special_requests,
        )
        today = service.now().date()
        return [booking_response(booking, today) for booking in bookings]
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected group booking failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create group booking",
        ) from exc


@router.get(
    "/bookings/by-number/{booking_number}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def get_booking_by_number(
    booking_number: str,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.get_booking_by_number(booking_number)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking lookup failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load booking",
        ) from exc


@router.get(
    "/bookings/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def get_booking(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.get_booking(booking_id)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking lookup failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load booking",
        ) from exc


@router.put(
    "/bookings/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def update_booking(
    booking_id: int,
    payload: UpdateBookingRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.update_booking(
            booking_id,
            check_in_date=payload.check_in_date,
            check_out_date=payload.check_out_date,
            occupancy=payload.occupancy(),
            special_requests=payload.special_requests,
        )
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update booking",
        ) from exc


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def cancel_booking(
    booking_id: int,
    payload: CancelBookingRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.cancel_booking(booking_id, payload.reason)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel booking",
        ) from exc
