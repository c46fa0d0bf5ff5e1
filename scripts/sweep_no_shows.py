#!/usr/bin/env python3
"""Mark overdue confirmed bookings as no-shows; meant for a daily scheduler."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.repository.hotel_repository import HotelRepository
from backend.services.booking_service import BookingLifecycleService
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger("sweep_no_shows")


def main() -> int:
    settings = get_settings()
    repository = HotelRepository(settings)
    repository.initialize_database()
    service = BookingLifecycleService(repository=repository, settings=settings)

    swept = service.sweep_no_shows()
    for booking in swept:
        print(f"NO_SHOW {booking.booking_number} room={booking.room_number} "
              f"check_in={booking.check_in_date.isoformat()}")
    logger.info("Sweep finished | marked=%s", len(swept))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
