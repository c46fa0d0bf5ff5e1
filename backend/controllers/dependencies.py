"""Shared FastAPI dependency providers and error translation for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.domain.errors import (
    BookingError,
    BookingNotFoundError,
    BookingValidationError,
    ConflictError,
    GroupPartialFailureError,
    InvalidTransitionError,
    RoomNotFoundError,
    UnsettledBalanceError,
)
from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from backend.services.booking_service import BookingLifecycleService
from backend.services.group_booking_service import GroupReservationCoordinator
from backend.services.service_charge_service import ServiceChargeLedger
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_booking_service(request: Request) -> BookingLifecycleService:
    service = getattr(request.app.state, "booking_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking service is not initialized",
        )
    return service


def get_group_coordinator(request: Request) -> GroupReservationCoordinator:
    coordinator = getattr(request.app.state, "group_coordinator", None)
    if coordinator is None:
        booking_service = get_booking_service(request)
        coordinator = GroupReservationCoordinator(
            lifecycle=booking_service,
            settings=get_settings(),
        )
        request.app.state.group_coordinator = coordinator
    return coordinator


def get_service_charge_ledger(request: Request) -> ServiceChargeLedger:
    ledger = getattr(request.app.state, "service_charge_ledger", None)
    if ledger is None:
        ledger = ServiceChargeLedger(lifecycle=get_booking_service(request))
        request.app.state.service_charge_ledger = ledger
    return ledger


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


def booking_error_to_http(exc: BookingError) -> HTTPException:
    """Map a recoverable booking failure onto the HTTP status the caller acts on."""
    if isinstance(exc, (BookingNotFoundError, RoomNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, GroupPartialFailureError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "conflicts": [
                    {
                        "room_id": conflict.room_id,
                        "check_in_date": conflict.check_in_date.isoformat(),
                        "check_out_date": conflict.check_out_date.isoformat(),
                        "conflicting_booking_numbers": list(
                            conflict.conflicting_booking_numbers
                        ),
                    }
                    for conflict in exc.conflicts
                ],
            },
        )
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "room_id": exc.room_id,
                "conflicting_booking_numbers": exc.conflicting_booking_numbers,
            },
        )
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "current_status": exc.current_status,
                "action": exc.action,
            },
        )
    if isinstance(exc, UnsettledBalanceError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "payment_status": exc.payment_status,
                "outstanding": str(exc.outstanding),
            },
        )
    if isinstance(exc, BookingValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.warning("Unmapped booking error | type=%s", type(exc).__name__)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
