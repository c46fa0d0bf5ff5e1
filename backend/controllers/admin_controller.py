"""Controller layer for front-desk operations behind the admin session."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from backend.controllers.booking_controller import (
    BookingResponse,
    ServiceChargeResponse,
    booking_response,
)
from backend.controllers.dependencies import (
    booking_error_to_http,
    get_auth_service,
    get_booking_service,
    get_service_charge_ledger,
    require_admin,
)
from backend.domain.errors import BookingError
from backend.domain.models import (
    BookingSearchCriteria,
    BookingStatus,
    GuestVerification,
    PaymentMethod,
    PaymentStatus,
    ServiceChargeType,
)
from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from backend.services.booking_service import BookingLifecycleService
from backend.services.service_charge_service import ServiceChargeLedger
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/admin", tags=["admin"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class CheckInRequest(BaseModel):
    deposit_method: PaymentMethod
    deposit_transaction_id: Optional[str] = Field(default=None, max_length=128)
    full_name: str = Field(min_length=1, max_length=200)
    national_id: str = Field(min_length=1, max_length=40)
    phone: str = Field(min_length=1, max_length=40)

    @field_validator("full_name", "national_id", "phone")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("verification fields must not be blank")
        return value.strip()


class MarkFailedRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class DiscountRequest(BaseModel):
    amount: Decimal = Field(ge=0)


class ServiceChargeRequest(BaseModel):
    charge_type: ServiceChargeType
    quantity: int = Field(default=1, ge=1)
    unit_amount: Decimal = Field(gt=0)
    description: str = Field(default="", max_length=500)

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: str) -> str:
        return value.strip()


class PaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    method: PaymentMethod
    transaction_id: Optional[str] = Field(default=None, max_length=128)


class RefundRequest(BaseModel):
    method: Optional[PaymentMethod] = None


class NotesRequest(BaseModel):
    notes: str = Field(min_length=1, max_length=2000)


class BookingPageResponse(BaseModel):
    items: list[BookingResponse]
    total: int = Field(ge=0)
    page: int = Field(ge=0)
    size: int = Field(ge=1)
    total_pages: int = Field(ge=0)


class NoShowSweepResponse(BaseModel):
    marked: int = Field(ge=0)
    booking_numbers: list[str]


def _failure(message: str) -> HTTPException:
    logger.exception("Unexpected %s failure", message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {message}",
    )


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.admin_token)
        return LoginResponse(access_token=bearer)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("login") from exc


@router.get(
    "/bookings",
    response_model=BookingPageResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def search_bookings(
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(default=None),
    check_in_from: Optional[date] = Query(default=None),
    check_in_to: Optional[date] = Query(default=None),
    keyword: Optional[str] = Query(default=None, max_length=200),
    national_id: Optional[str] = Query(default=None, max_length=40),
    room_id: Optional[int] = Query(default=None, gt=0),
    group_booking_id: Optional[str] = Query(default=None, max_length=32),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.search_default_page_size, ge=1),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingPageResponse:
    try:
        result = service.search_bookings(
            BookingSearchCriteria(
                status=booking_status,
                payment_status=payment_status,
                check_in_from=check_in_from,
                check_in_to=check_in_to,
                keyword=keyword,
                national_id=national_id,
                room_id=room_id,
                group_booking_id=group_booking_id,
                page=page,
                size=size,
                sort_by=sort_by,
                sort_order=sort_order,
            )
        )
        today = service.now().date()
        return BookingPageResponse(
            items=[booking_response(booking, today) for booking in result.items],
            total=result.total,
            page=result.page,
            size=result.size,
            total_pages=result.total_pages,
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("search bookings") from exc


@router.get(
    "/groups/{group_booking_id}",
    response_model=list[BookingResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def get_group_bookings(
    group_booking_id: str,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> list[BookingResponse]:
    try:
        bookings = service.get_group_bookings(group_booking_id)
        today = service.now().date()
        return [booking_response(booking, today) for booking in bookings]
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("load group bookings") from exc


@router.post(
    "/bookings/{booking_id}/confirm",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def confirm_booking(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.confirm_booking(booking_id)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("confirm booking") from exc


@router.post(
    "/bookings/{booking_id}/check-in",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def check_in(
    booking_id: int,
    payload: CheckInRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.check_in(
            booking_id,
            deposit_method=payload.deposit_method,
            deposit_transaction_id=payload.deposit_transaction_id,
            guest_verification=GuestVerification(
                full_name=payload.full_name,
                national_id=payload.national_id,
                phone=payload.phone,
            ),
        )
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("check in booking") from exc


@router.post(
    "/bookings/{booking_id}/check-out",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def check_out(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.check_out(booking_id)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("check out booking") from exc


@router.post(
    "/bookings/{booking_id}/no-show",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def mark_no_show(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.mark_no_show(booking_id)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("mark no-show") from exc


@router.post(
    "/bookings/{booking_id}/complete",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def complete_booking(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.complete_booking(booking_id)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("complete booking") from exc


@router.post(
    "/bookings/{booking_id}/mark-failed",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def mark_failed(
    booking_id: int,
    payload: MarkFailedRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.mark_failed(booking_id, payload.reason)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("mark booking failed") from exc


@router.post(
    "/bookings/{booking_id}/discount",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def apply_discount(
    booking_id: int,
    payload: DiscountRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.apply_discount(booking_id, payload.amount)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("apply discount") from exc


@router.get(
    "/bookings/{booking_id}/service-charges",
    response_model=list[ServiceChargeResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def list_service_charges(
    booking_id: int,
    ledger: ServiceChargeLedger = Depends(get_service_charge_ledger),
) -> list[ServiceChargeResponse]:
    try:
        return [
            ServiceChargeResponse(
                charge_type=charge.charge_type,
                quantity=charge.quantity,
                unit_amount=charge.unit_amount,
                total_amount=charge.total_amount,
                description=charge.description,
                charged_at=charge.charged_at,
            )
            for charge in ledger.list_charges(booking_id)
        ]
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("list service charges") from exc


@router.post(
    "/bookings/{booking_id}/service-charges",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def add_service_charge(
    booking_id: int,
    payload: ServiceChargeRequest,
    ledger: ServiceChargeLedger = Depends(get_service_charge_ledger),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = ledger.add_charge(
            booking_id,
            charge_type=payload.charge_type,
            quantity=payload.quantity,
            unit_amount=payload.unit_amount,
            description=payload.description,
        )
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("add service charge") from exc


@router.delete(
    "/bookings/{booking_id}/service-charges/{charge_index}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def remove_service_charge(
    booking_id: int,
    charge_index: int,
    ledger: ServiceChargeLedger = Depends(get_service_charge_ledger),
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = ledger.remove_charge(booking_id, charge_index)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("remove service charge") from exc


@router.post(
    "/bookings/{booking_id}/payments",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def record_payment(
    booking_id: int,
    payload: PaymentRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.record_payment(
            booking_id,
            amount=payload.amount,
            method=payload.method,
            transaction_id=payload.transaction_id,
        )
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("record payment") from exc


@router.post(
    "/bookings/{booking_id}/refund",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def refund_booking(
    booking_id: int,
    payload: Optional[RefundRequest] = None,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.refund(booking_id, method=payload.method if payload else None)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("refund booking") from exc


@router.post(
    "/bookings/{booking_id}/notes",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def add_admin_notes(
    booking_id: int,
    payload: NotesRequest,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.add_admin_notes(booking_id, payload.notes)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("update admin notes") from exc


@router.post(
    "/bookings/{booking_id}/room-cleaned",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def mark_room_cleaned(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.mark_room_cleaned(booking_id)
        return booking_response(booking, service.now().date())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("mark room cleaned") from exc


@router.post(
    "/no-show-sweep",
    response_model=NoShowSweepResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
def sweep_no_shows(
    service: BookingLifecycleService = Depends(get_booking_service),
) -> NoShowSweepResponse:
    try:
        swept = service.sweep_no_shows()
        return NoShowSweepResponse(
            marked=len(swept),
            booking_numbers=[booking.booking_number for booking in swept],
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _failure("sweep no-shows") from exc
