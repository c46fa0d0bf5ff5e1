"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Sequence

from backend.domain.errors import ConflictError
from backend.domain.financials import FinancialBreakdown
from backend.domain.models import (
    HOLDING_STATUSES,
    Booking,
    BookingPage,
    BookingSearchCriteria,
    BookingStatus,
    DateRange,
    GuestInfo,
    Occupancy,
    PaymentKind,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    Room,
    RoomStatus,
    ServiceCharge,
    ServiceChargeType,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

OVERLAP_ABORT_MESSAGE = "booking_overlap"

_HOLDING_SQL = ", ".join(f"'{status.value}'" for status in sorted(HOLDING_STATUSES))

_SORT_COLUMNS = {
    "created_at": "b.created_at",
    "check_in_date": "b.check_in_date",
    "total_amount": "CAST(b.total_amount AS REAL)",
    "booking_number": "b.booking_number",
}
SORTABLE_FIELDS = tuple(_SORT_COLUMNS)

_BOOKING_SELECT = """
    SELECT b.*, r.room_number AS room_number
    FROM Bookings AS b
    INNER JOIN Rooms AS r ON r.id = b.room_id
"""


def _to_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _escape_like(value: str) -> str:
    """Make LIKE wildcards in user text match literally (used with ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _room_from_row(row: sqlite3.Row) -> Room:
    return Room(
        room_id=int(row["id"]),
        room_number=str(row["room_number"]),
        room_type=str(row["room_type"]),
        price_per_night=Decimal(row["price_per_night"]),
        capacity=int(row["capacity"]),
        status=RoomStatus(row["status"]),
    )


class HotelRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly by transaction()
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_busy_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction that serializes against every other writer.

        BEGIN IMMEDIATE takes the database reserved lock up front, so a
        check-then-insert performed inside the block cannot interleave with
        another reservation.
        """
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    @contextmanager
    def _session(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        connection = self._connect()
        try:
            yield connection
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._session(None) as conn:
                conn.executescript(
                    f"""
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_number TEXT NOT NULL UNIQUE,
                        room_type TEXT NOT NULL,
                        price_per_night TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        status TEXT NOT NULL DEFAULT 'AVAILABLE',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE TABLE IF NOT EXISTS Bookings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        booking_number TEXT NOT NULL UNIQUE,
                        group_booking_id TEXT,
                        guest_id TEXT,
                        guest_full_name TEXT NOT NULL,
                        guest_email TEXT,
                        guest_phone TEXT,
                        guest_national_id TEXT,
                        guest_verified_at TEXT,
                        room_id INTEGER NOT NULL,
                        check_in_date TEXT NOT NULL,
                        check_out_date TEXT NOT NULL,
                        number_of_guests INTEGER NOT NULL CHECK (number_of_guests >= 1),
                        number_of_children INTEGER NOT NULL DEFAULT 0
                            CHECK (number_of_children >= 0),
                        room_price_per_night TEXT NOT NULL,
                        number_of_nights INTEGER NOT NULL CHECK (number_of_nights >= 1),
                        subtotal TEXT NOT NULL,
                        tax_amount TEXT NOT NULL,
                        service_charge TEXT NOT NULL,
                        additional_charges_total TEXT NOT NULL,
                        discount TEXT NOT NULL,
                        total_amount TEXT NOT NULL,
                        deposit_amount TEXT NOT NULL,
                        deposit_method TEXT,
                        deposit_transaction_id TEXT,
                        cancellation_fee TEXT NOT NULL DEFAULT '0.00',
                        payment_status TEXT NOT NULL,
                        status TEXT NOT NULL,
                        special_requests TEXT,
                        admin_notes TEXT,
                        cancellation_reason TEXT,
                        failure_reason TEXT,
                        room_cleaned INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        confirmed_at TEXT,
                        checked_in_at TEXT,
                        checked_out_at TEXT,
                        cancelled_at TEXT,
                        CHECK (check_out_date > check_in_date),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );

                    CREATE TABLE IF NOT EXISTS ServiceCharges (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        booking_id INTEGER NOT NULL,
                        charge_type TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        quantity INTEGER NOT NULL CHECK (quantity > 0),
                        unit_amount TEXT NOT NULL,
                        total_amount TEXT NOT NULL,
                        charged_at TEXT NOT NULL,
                        removed_at TEXT,
                        FOREIGN KEY (booking_id) REFERENCES Bookings(id)
                    );

                    CREATE TABLE IF NOT EXISTS Payments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        booking_id INTEGER NOT NULL,
                        kind TEXT NOT NULL,
                        method TEXT NOT NULL,
                        amount TEXT NOT NULL,
                        transaction_id TEXT,
                        recorded_at TEXT NOT NULL,
                        FOREIGN KEY (booking_id) REFERENCES Bookings(id)
                    );

                    CREATE INDEX IF NOT EXISTS idx_bookings_room_dates
                    ON Bookings(room_id, check_in_date, check_out_date);

                    CREATE INDEX IF NOT EXISTS idx_bookings_status_check_in
                    ON Bookings(status, check_in_date);

                    CREATE INDEX IF NOT EXISTS idx_bookings_group
                    ON Bookings(group_booking_id);

                    CREATE INDEX IF NOT EXISTS idx_service_charges_booking
                    ON ServiceCharges(booking_id);

                    CREATE INDEX IF NOT EXISTS idx_payments_booking
                    ON Payments(booking_id);

                    CREATE TRIGGER IF NOT EXISTS trg_bookings_no_overlap_insert
                    BEFORE INSERT ON Bookings
                    WHEN NEW.status IN ({_HOLDING_SQL})
                    BEGIN
                        SELECT RAISE(ABORT, '{OVERLAP_ABORT_MESSAGE}')
                        WHERE EXISTS (
                            SELECT 1 FROM Bookings AS held
                            WHERE held.room_id = NEW.room_id
                              AND held.status IN ({_HOLDING_SQL})
                              AND held.check_in_date < NEW.check_out_date
                              AND NEW.check_in_date < held.check_out_date
                        );
                    END;

                    CREATE TRIGGER IF NOT EXISTS trg_bookings_no_overlap_update
                    BEFORE UPDATE OF room_id, check_in_date, check_out_date, status ON Bookings
                    WHEN NEW.status IN ({_HOLDING_SQL})
                    BEGIN
                        SELECT RAISE(ABORT, '{OVERLAP_ABORT_MESSAGE}')
                        WHERE EXISTS (
                            SELECT 1 FROM Bookings AS held
                            WHERE held.id != NEW.id
                              AND held.room_id = NEW.room_id
                              AND held.status IN ({_HOLDING_SQL})
                              AND held.check_in_date < NEW.check_out_date
                              AND NEW.check_in_date < held.check_out_date
                        );
                    END;
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_rooms(self) -> int:
        """Seed a small room inventory only when the Rooms table is empty."""
        rooms = [
            ("101", "STANDARD", "200.00", 2),
            ("102", "STANDARD", "200.00", 2),
            ("103", "STANDARD", "220.00", 3),
            ("201", "DELUXE", "320.00", 3),
            ("202", "DELUXE", "320.00", 3),
            ("301", "SUITE", "550.00", 4),
        ]
        try:
            with self.transaction() as conn:
                count = int(conn.execute("SELECT COUNT(*) AS count FROM Rooms;").fetchone()["count"])
                if count > 0:
                    logger.info("Room inventory already present; skipping seed")
                    return 0
                conn.executemany(
                    """
                    INSERT INTO Rooms (room_number, room_type, price_per_night, capacity, status)
                    VALUES (?, ?, ?, ?, 'AVAILABLE');
                    """,
                    rooms,
                )
            logger.info("Seeded %s demo rooms", len(rooms))
            return len(rooms)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Room seeding failed: {exc}") from exc

    # ------------------------------------------------------------------ rooms

    def create_room(
        self,
        room_number: str,
        price_per_night: Decimal,
        capacity: int,
        room_type: str = "STANDARD",
        status: RoomStatus = RoomStatus.AVAILABLE,
    ) -> Room:
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO Rooms (room_number, room_type, price_per_night, capacity, status)
                VALUES (?, ?, ?, ?, ?);
                """,
                (room_number, room_type, str(price_per_night), capacity, status.value),
            )
            room_id = int(cursor.lastrowid)
        room = self.get_room(room_id)
        assert room is not None
        return room

    def get_room(
        self,
        room_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Room]:
        with self._session(conn) as session:
            row = session.execute("SELECT * FROM Rooms WHERE id = ?;", (room_id,)).fetchone()
            return _room_from_row(row) if row is not None else None

    def list_rooms(self) -> list[Room]:
        with self._session(None) as session:
            rows = session.execute("SELECT * FROM Rooms ORDER BY room_number ASC;").fetchall()
            return [_room_from_row(row) for row in rows]

    def update_room_price(self, room_id: int, price_per_night: Decimal) -> None:
        with self.transaction() as conn:
            conn.execute(
                "UPDATE Rooms SET price_per_night = ? WHERE id = ?;",
                (str(price_per_night), room_id),
            )

    def update_room_status(
        self,
        conn: sqlite3.Connection,
        room_id: int,
        status: RoomStatus,
    ) -> None:
        conn.execute("UPDATE Rooms SET status = ? WHERE id = ?;", (status.value, room_id))

    # -------------------------------------------------------------- inventory

    def find_overlapping_booking_numbers(
        self,
        room_id: int,
        check_in_date: date,
        check_out_date: date,
        conn: Optional[sqlite3.Connection] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> list[str]:
        """Return holding bookings on the room whose range overlaps [check_in, check_out)."""
        with self._session(conn) as session:
            rows = session.execute(
                f"""
                SELECT booking_number
                FROM Bookings
                WHERE room_id = ?
                  AND status IN ({_HOLDING_SQL})
                  AND check_in_date < ?
                  AND ? < check_out_date
                  AND id != ?
                ORDER BY check_in_date ASC, id ASC;
                """,
                (
                    room_id,
                    check_out_date.isoformat(),
                    check_in_date.isoformat(),
                    exclude_booking_id if exclude_booking_id is not None else -1,
                ),
            ).fetchall()
            return [str(row["booking_number"]) for row in rows]

    def list_held_ranges(
        self,
        room_id: int,
        window_start: date,
        window_end: date,
    ) -> list[DateRange]:
        with self._session(None) as session:
            rows = session.execute(
                f"""
                SELECT check_in_date, check_out_date
                FROM Bookings
                WHERE room_id = ?
                  AND status IN ({_HOLDING_SQL})
                  AND check_in_date < ?
                  AND ? < check_out_date
                ORDER BY check_in_date ASC;
                """,
                (room_id, window_end.isoformat(), window_start.isoformat()),
            ).fetchall()
            return [
                DateRange(
                    start=date.fromisoformat(row["check_in_date"]),
                    end=date.fromisoformat(row["check_out_date"]),
                )
                for row in rows
            ]

    # --------------------------------------------------------------- bookings

    def insert_booking(self, conn: sqlite3.Connection, booking: Booking) -> int:
        """Insert a booking row; ``booking.booking_id`` is ignored."""
        values = self._booking_values(booking)
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        try:
            cursor = conn.execute(
                f"INSERT INTO Bookings ({columns}) VALUES ({placeholders});",
                tuple(values.values()),
            )
        except sqlite3.IntegrityError as exc:
            self._raise_if_overlap(conn, booking, exc)
            raise
        return int(cursor.lastrowid)

    def update_booking(self, conn: sqlite3.Connection, booking: Booking) -> None:
        values = self._booking_values(booking)
        assignments = ", ".join(f"{column} = ?" for column in values)
        try:
            conn.execute(
                f"UPDATE Bookings SET {assignments} WHERE id = ?;",
                (*values.values(), booking.booking_id),
            )
        except sqlite3.IntegrityError as exc:
            self._raise_if_overlap(conn, booking, exc)
            raise

    def _raise_if_overlap(
        self,
        conn: sqlite3.Connection,
        booking: Booking,
        exc: sqlite3.IntegrityError,
    ) -> None:
        if OVERLAP_ABORT_MESSAGE not in str(exc):
            return
        conflicting = self.find_overlapping_booking_numbers(
            booking.room_id,
            booking.check_in_date,
            booking.check_out_date,
            conn=conn,
            exclude_booking_id=booking.booking_id or None,
        )
        raise ConflictError(
            room_id=booking.room_id,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            conflicting_booking_numbers=conflicting,
        ) from exc

    @staticmethod
    def _booking_values(booking: Booking) -> dict[str, object]:
        financials = booking.financials
        return {
            "booking_number": booking.booking_number,
            "group_booking_id": booking.group_booking_id,
            "guest_id": booking.guest_id,
            "guest_full_name": booking.guest.full_name,
            "guest_email": booking.guest.email,
            "guest_phone": booking.guest.phone,
            "guest_national_id": booking.guest.national_id,
            "guest_verified_at": _to_iso(booking.guest_verified_at),
            "room_id": booking.room_id,
            "check_in_date": booking.check_in_date.isoformat(),
            "check_out_date": booking.check_out_date.isoformat(),
            "number_of_guests": booking.occupancy.number_of_guests,
            "number_of_children": booking.occupancy.number_of_children,
            "room_price_per_night": str(booking.room_price_per_night),
            "number_of_nights": booking.number_of_nights,
            "subtotal": str(financials.subtotal),
            "tax_amount": str(financials.tax_amount),
            "service_charge": str(financials.service_charge),
            "additional_charges_total": str(financials.additional_charges_total),
            "discount": str(financials.discount),
            "total_amount": str(financials.total_amount),
            "deposit_amount": str(booking.deposit_amount),
            "deposit_method": booking.deposit_method.value if booking.deposit_method else None,
            "deposit_transaction_id": booking.deposit_transaction_id,
            "cancellation_fee": str(booking.cancellation_fee),
            "payment_status": booking.payment_status.value,
            "status": booking.status.value,
            "special_requests": booking.special_requests,
            "admin_notes": booking.admin_notes,
            "cancellation_reason": booking.cancellation_reason,
            "failure_reason": booking.failure_reason,
            "room_cleaned": 1 if booking.room_cleaned else 0,
            "created_at": _to_iso(booking.created_at),
            "updated_at": _to_iso(booking.updated_at),
            "confirmed_at": _to_iso(booking.confirmed_at),
            "checked_in_at": _to_iso(booking.checked_in_at),
            "checked_out_at": _to_iso(booking.checked_out_at),
            "cancelled_at": _to_iso(booking.cancelled_at),
        }

    def get_booking(
        self,
        booking_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Booking]:
        with self._session(conn) as session:
            rows = session.execute(f"{_BOOKING_SELECT} WHERE b.id = ?;", (booking_id,)).fetchall()
            bookings = self._hydrate(session, rows)
            return bookings[0] if bookings else None

    def get_booking_by_number(
        self,
        booking_number: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Booking]:
        with self._session(conn) as session:
            rows = session.execute(
                f"{_BOOKING_SELECT} WHERE b.booking_number = ?;",
                (booking_number,),
            ).fetchall()
            bookings = self._hydrate(session, rows)
            return bookings[0] if bookings else None

    def list_group_bookings(self, group_booking_id: str) -> list[Booking]:
        with self._session(None) as session:
            rows = session.execute(
                f"{_BOOKING_SELECT} WHERE b.group_booking_id = ? ORDER BY b.id ASC;",
                (group_booking_id,),
            ).fetchall()
            return self._hydrate(session, rows)

    def list_overdue_confirmed_booking_ids(self, today: date) -> list[int]:
        """Confirmed bookings whose check-in date is already in the past."""
        with self._session(None) as session:
            rows = session.execute(
                """
                SELECT id FROM Bookings
                WHERE status = ? AND check_in_date < ?
                ORDER BY check_in_date ASC, id ASC;
                """,
                (BookingStatus.CONFIRMED.value, today.isoformat()),
            ).fetchall()
            return [int(row["id"]) for row in rows]

    def count_bookings(self) -> int:
        with self._session(None) as session:
            return int(session.execute("SELECT COUNT(*) AS count FROM Bookings;").fetchone()["count"])

    def search_bookings(self, criteria: BookingSearchCriteria) -> BookingPage:
        clauses: list[str] = []
        params: list[object] = []
        if criteria.status is not None:
            clauses.append("b.status = ?")
            params.append(criteria.status.value)
        if criteria.payment_status is not None:
            clauses.append("b.payment_status = ?")
            params.append(criteria.payment_status.value)
        if criteria.check_in_from is not None:
            clauses.append("b.check_in_date >= ?")
            params.append(criteria.check_in_from.isoformat())
        if criteria.check_in_to is not None:
            clauses.append("b.check_in_date <= ?")
            params.append(criteria.check_in_to.isoformat())
        if criteria.room_id is not None:
            clauses.append("b.room_id = ?")
            params.append(criteria.room_id)
        if criteria.group_booking_id:
            clauses.append("b.group_booking_id = ?")
            params.append(criteria.group_booking_id)
        if criteria.national_id:
            clauses.append("b.guest_national_id = ?")
            params.append(criteria.national_id.strip())
        if criteria.keyword and criteria.keyword.strip():
            pattern = f"%{_escape_like(criteria.keyword.strip())}%"
            clauses.append(
                "(b.booking_number LIKE ? ESCAPE '\\' OR b.guest_full_name LIKE ? ESCAPE '\\' "
                "OR b.guest_email LIKE ? ESCAPE '\\' OR b.guest_phone LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern] * 4)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order_column = _SORT_COLUMNS[criteria.sort_by]
        direction = "ASC" if criteria.sort_order == "asc" else "DESC"

        with self._session(None) as session:
            total = int(
                session.execute(
                    f"SELECT COUNT(*) AS count FROM Bookings AS b {where};",
                    tuple(params),
                ).fetchone()["count"]
            )
            rows = session.execute(
                f"""
                {_BOOKING_SELECT}
                {where}
                ORDER BY {order_column} {direction}, b.id {direction}
                LIMIT ? OFFSET ?;
                """,
                (*params, criteria.size, criteria.page * criteria.size),
            ).fetchall()
            items = self._hydrate(session, rows)
        return BookingPage(items=items, total=total, page=criteria.page, size=criteria.size)

    def _hydrate(self, conn: sqlite3.Connection, rows: Sequence[sqlite3.Row]) -> list[Booking]:
        if not rows:
            return []
        booking_ids = [int(row["id"]) for row in rows]
        placeholders = ",".join("?" for _ in booking_ids)

        charges: dict[int, list[ServiceCharge]] = {booking_id: [] for booking_id in booking_ids}
        for row in conn.execute(
            f"""
            SELECT * FROM ServiceCharges
            WHERE booking_id IN ({placeholders}) AND removed_at IS NULL
            ORDER BY id ASC;
            """,
            tuple(booking_ids),
        ).fetchall():
            charges[int(row["booking_id"])].append(
                ServiceCharge(
                    charge_id=int(row["id"]),
                    charge_type=ServiceChargeType(row["charge_type"]),
                    quantity=int(row["quantity"]),
                    unit_amount=Decimal(row["unit_amount"]),
                    total_amount=Decimal(row["total_amount"]),
                    description=str(row["description"]),
                    charged_at=datetime.fromisoformat(row["charged_at"]),
                )
            )

        payments: dict[int, list[PaymentRecord]] = {booking_id: [] for booking_id in booking_ids}
        for row in conn.execute(
            f"SELECT * FROM Payments WHERE booking_id IN ({placeholders}) ORDER BY id ASC;",
            tuple(booking_ids),
        ).fetchall():
            payments[int(row["booking_id"])].append(
                PaymentRecord(
                    payment_id=int(row["id"]),
                    kind=PaymentKind(row["kind"]),
                    amount=Decimal(row["amount"]),
                    method=PaymentMethod(row["method"]),
                    transaction_id=row["transaction_id"],
                    recorded_at=datetime.fromisoformat(row["recorded_at"]),
                )
            )

        return [
            self._booking_from_row(
                row,
                tuple(charges[int(row["id"])]),
                tuple(payments[int(row["id"])]),
            )
            for row in rows
        ]

    @staticmethod
    def _booking_from_row(
        row: sqlite3.Row,
        service_charges: tuple[ServiceCharge, ...],
        payments: tuple[PaymentRecord, ...],
    ) -> Booking:
        return Booking(
            booking_id=int(row["id"]),
            booking_number=str(row["booking_number"]),
            group_booking_id=row["group_booking_id"],
            guest_id=row["guest_id"],
            guest=GuestInfo(
                full_name=str(row["guest_full_name"]),
                email=row["guest_email"],
                phone=row["guest_phone"],
                national_id=row["guest_national_id"],
            ),
            room_id=int(row["room_id"]),
            room_number=str(row["room_number"]),
            check_in_date=date.fromisoformat(row["check_in_date"]),
            check_out_date=date.fromisoformat(row["check_out_date"]),
            occupancy=Occupancy(
                number_of_guests=int(row["number_of_guests"]),
                number_of_children=int(row["number_of_children"]),
            ),
            room_price_per_night=Decimal(row["room_price_per_night"]),
            financials=FinancialBreakdown(
                subtotal=Decimal(row["subtotal"]),
                tax_amount=Decimal(row["tax_amount"]),
                service_charge=Decimal(row["service_charge"]),
                additional_charges_total=Decimal(row["additional_charges_total"]),
                discount=Decimal(row["discount"]),
                total_amount=Decimal(row["total_amount"]),
            ),
            deposit_amount=Decimal(row["deposit_amount"]),
            deposit_method=PaymentMethod(row["deposit_method"]) if row["deposit_method"] else None,
            deposit_transaction_id=row["deposit_transaction_id"],
            guest_verified_at=_to_datetime(row["guest_verified_at"]),
            cancellation_fee=Decimal(row["cancellation_fee"]),
            payment_status=PaymentStatus(row["payment_status"]),
            status=BookingStatus(row["status"]),
            special_requests=row["special_requests"],
            admin_notes=row["admin_notes"],
            cancellation_reason=row["cancellation_reason"],
            failure_reason=row["failure_reason"],
            room_cleaned=bool(row["room_cleaned"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            confirmed_at=_to_datetime(row["confirmed_at"]),
            checked_in_at=_to_datetime(row["checked_in_at"]),
            checked_out_at=_to_datetime(row["checked_out_at"]),
            cancelled_at=_to_datetime(row["cancelled_at"]),
            service_charges=service_charges,
            payments=payments,
        )

    # ------------------------------------------------- charges and payments

    def insert_service_charge(
        self,
        conn: sqlite3.Connection,
        booking_id: int,
        charge_type: ServiceChargeType,
        quantity: int,
        unit_amount: Decimal,
        total_amount: Decimal,
        description: str,
        charged_at: datetime,
    ) -> int:
        cursor = conn.execute(
            """
            INSERT INTO ServiceCharges (
                booking_id, charge_type, description, quantity,
                unit_amount, total_amount, charged_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                booking_id,
                charge_type.value,
                description,
                quantity,
                str(unit_amount),
                str(total_amount),
                charged_at.isoformat(),
            ),
        )
        return int(cursor.lastrowid)

    def mark_service_charge_removed(
        self,
        conn: sqlite3.Connection,
        charge_id: int,
        removed_at: datetime,
    ) -> None:
        conn.execute(
            "UPDATE ServiceCharges SET removed_at = ? WHERE id = ? AND removed_at IS NULL;",
            (removed_at.isoformat(), charge_id),
        )

    def count_service_charge_rows(self, booking_id: int) -> int:
        """Count every charge row ever written for a booking, removed ones included."""
        with self._session(None) as session:
            row = session.execute(
                "SELECT COUNT(*) AS count FROM ServiceCharges WHERE booking_id = ?;",
                (booking_id,),
            ).fetchone()
            return int(row["count"])

    def insert_payment(
        self,
        conn: sqlite3.Connection,
        booking_id: int,
        kind: PaymentKind,
        amount: Decimal,
        method: PaymentMethod,
        transaction_id: Optional[str],
        recorded_at: datetime,
    ) -> int:
        cursor = conn.execute(
            """
            INSERT INTO Payments (booking_id, kind, method, amount, transaction_id, recorded_at)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                booking_id,
                kind.value,
                method.value,
                str(amount),
                transaction_id,
                recorded_at.isoformat(),
            ),
        )
        return int(cursor.lastrowid)
