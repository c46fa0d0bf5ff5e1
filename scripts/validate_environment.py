#!/usr/bin/env python3
"""Validate local hotel booking engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, datetime, timedelta
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.errors import ConflictError
from backend.domain.models import GuestInfo, Occupancy
from backend.repository.hotel_repository import HotelRepository
from backend.services.booking_service import BookingLifecycleService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="hotel-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "hotel_validation.db",
        )
        repository = HotelRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo room seeding
        try:
            seeded = repository.seed_demo_rooms()
            if seeded < 3:
                raise RuntimeError(f"expected at least 3 rooms, got {seeded}")
            ok, line = _print_result("Demo room seeding", True, f": {seeded} rooms")
        except Exception as exc:
            ok, line = _print_result("Demo room seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Reservation and overlap rejection
        try:
            service = BookingLifecycleService(
                repository=repository,
                settings=validation_settings,
                clock=lambda: datetime.combine(date.today(), datetime.min.time()),
            )
            room_id = repository.list_rooms()[0].room_id
            check_in = date.today() + timedelta(days=7)
            guest = GuestInfo(full_name="Environment Check")
            service.create_booking(
                room_id=room_id,
                check_in_date=check_in,
                check_out_date=check_in + timedelta(days=2),
                guest=guest,
                occupancy=Occupancy(number_of_guests=1),
            )
            try:
                service.create_booking(
                    room_id=room_id,
                    check_in_date=check_in + timedelta(days=1),
                    check_out_date=check_in + timedelta(days=3),
                    guest=guest,
                    occupancy=Occupancy(number_of_guests=1),
                )
            except ConflictError:
                ok, line = _print_result("Reservation conflict detection", True)
            else:
                raise RuntimeError("overlapping reservation was accepted")
        except Exception as exc:
            ok, line = _print_result("Reservation conflict detection", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Hotel Booking Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
