"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and booking services, registers routers, and runs
startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.admin_controller import router as admin_router
from backend.controllers.booking_controller import router as booking_router
from backend.repository.hotel_repository import HotelRepository
from backend.services.auth_service import AuthService
from backend.services.booking_service import BookingLifecycleService
from backend.services.group_booking_service import GroupReservationCoordinator
from backend.services.inventory_service import InventoryLedger
from backend.services.service_charge_service import ServiceChargeLedger
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service is constructed here and injected through app.state, so each
    dependency is traceable from this function.
    """
    settings = settings or get_settings()

    # --- Repository (single SQLite connection factory) ---
    repository = HotelRepository(settings)

    # --- Services (business logic, no direct SQL) ---
    inventory = InventoryLedger(repository=repository, settings=settings)
    booking_service = BookingLifecycleService(
        repository=repository,
        inventory=inventory,
        settings=settings,
    )
    group_coordinator = GroupReservationCoordinator(lifecycle=booking_service, settings=settings)
    service_charge_ledger = ServiceChargeLedger(lifecycle=booking_service)
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(booking_router)
    app.include_router(admin_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.inventory = inventory
    app.state.booking_service = booking_service
    app.state.group_coordinator = group_coordinator
    app.state.service_charge_ledger = service_charge_ledger
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema (tables, indexes and overlap triggers) must exist before the
    demo room inventory is seeded.
    """
    repository: HotelRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_rooms:
        logger.info("Startup: seeding demo rooms (skipped if Rooms table not empty)")
        repository.seed_demo_rooms()

    if not settings.admin_token:
        logger.warning("Startup: ADMIN_TOKEN is not set; admin endpoints are unauthenticated")

    logger.info("Startup complete | database=%s", repository.database_path)


# Module-level app object for uvicorn
app = create_app()
