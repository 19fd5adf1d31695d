"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from backend.domain.models import (
    Booking,
    Equipment,
    MeetingRequest,
    MeetingRequestData,
    Room,
    RoomEquipmentLink,
    User,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class BookingConflictError(Exception):
    """Raised when a booking would overlap a confirmed booking's buffered interval."""


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_instant(value: datetime) -> str:
    # Fixed-width UTC text keeps SQL string comparisons chronological.
    return to_utc(value).isoformat(timespec="microseconds")


def _parse_instant(raw: Optional[str]) -> Optional[datetime]:
    if raw is None:
        return None
    return to_utc(datetime.fromisoformat(str(raw)))


def _row_to_booking(row: sqlite3.Row) -> Booking:
    return Booking(
        booking_id=int(row["id"]),
        meeting_request_id=int(row["meeting_request_id"]),
        room_id=int(row["room_id"]) if row["room_id"] is not None else None,
        start_at=_parse_instant(row["start_at"]),
        end_at=_parse_instant(row["end_at"]),
        status=str(row["status"]),
        checked_in_at=_parse_instant(row["checked_in_at"]),
    )


def _row_to_meeting_request(row: sqlite3.Row) -> MeetingRequest:
    return MeetingRequest(
        request_id=int(row["id"]),
        organizer_id=int(row["organizer_id"]),
        duration=int(row["duration"]),
        preferred_start=_parse_instant(row["preferred_start"]),
        attendees=tuple(int(item) for item in json.loads(row["attendees"])),
        required_equipment=tuple(int(item) for item in json.loads(row["required_equipment"])),
        flexibility=int(row["flexibility"]),
        priority=str(row["priority"]),
        status=str(row["status"]),
    )


_BOOKING_COLUMNS = "id, meeting_request_id, room_id, start_at, end_at, status, checked_in_at"
_ROOM_MUTABLE_COLUMNS = ("name", "capacity", "hourly_rate", "location")


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Users (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        email TEXT NOT NULL UNIQUE,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL UNIQUE,
                        capacity INTEGER NOT NULL CHECK (capacity >= 0),
                        hourly_rate REAL NOT NULL CHECK (hourly_rate >= 0),
                        location TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Equipment (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL UNIQUE,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS RoomEquipment (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        equipment_id INTEGER,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (room_id, equipment_id),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE CASCADE,
                        FOREIGN KEY (equipment_id) REFERENCES Equipment(id) ON DELETE SET NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS MeetingRequests (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        organizer_id INTEGER NOT NULL,
                        duration INTEGER NOT NULL CHECK (duration > 0),
                        required_equipment TEXT NOT NULL DEFAULT '[]',
                        preferred_start TEXT NOT NULL,
                        flexibility INTEGER NOT NULL DEFAULT 0 CHECK (flexibility >= 0),
                        priority TEXT NOT NULL DEFAULT 'normal'
                            CHECK (priority IN ('low', 'normal', 'high', 'urgent')),
                        attendees TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending'
                            CHECK (status IN ('pending', 'approved', 'rejected')),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        meeting_request_id INTEGER NOT NULL,
                        room_id INTEGER,
                        start_at TEXT NOT NULL,
                        end_at TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'confirmed'
                            CHECK (status IN ('confirmed', 'cancelled')),
                        checked_in_at TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (meeting_request_id) REFERENCES MeetingRequests(id),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE SET NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS BookingAttendees (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        booking_id INTEGER NOT NULL,
                        user_id INTEGER NOT NULL,
                        UNIQUE (booking_id, user_id),
                        FOREIGN KEY (booking_id) REFERENCES Bookings(id) ON DELETE CASCADE,
                        FOREIGN KEY (user_id) REFERENCES Users(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_room_status_start
                    ON Bookings(room_id, status, start_at);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_status_checkin
                    ON Bookings(status, checked_in_at, start_at);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_meeting_requests_status
                    ON MeetingRequests(status);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed a small room catalogue and staff directory only when tables are empty."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                room_count = int(cursor.fetchone()["count"])
                if room_count > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

                equipment = ["Projector", "Whiteboard", "Video Conference", "Speakerphone"]
                cursor.executemany(
                    "INSERT INTO Equipment (name) VALUES (?);",
                    [(name,) for name in equipment],
                )

                rooms = [
                    ("Huddle 1", 4, 20.0, "Floor 1"),
                    ("Huddle 2", 4, 25.0, "Floor 1"),
                    ("Focus Room", 6, 30.0, "Floor 2"),
                    ("Team Room", 10, 50.0, "Floor 2"),
                    ("Board Room", 16, 120.0, "Floor 3"),
                    ("Town Hall", 40, 200.0, "Floor 3"),
                ]
                cursor.executemany(
                    """
                    INSERT INTO Rooms (name, capacity, hourly_rate, location)
                    VALUES (?, ?, ?, ?);
                    """,
                    rooms,
                )

                room_equipment = [
                    ("Huddle 2", "Whiteboard"),
                    ("Focus Room", "Whiteboard"),
                    ("Focus Room", "Speakerphone"),
                    ("Team Room", "Projector"),
                    ("Team Room", "Whiteboard"),
                    ("Board Room", "Projector"),
                    ("Board Room", "Video Conference"),
                    ("Board Room", "Speakerphone"),
                    ("Town Hall", "Projector"),
                    ("Town Hall", "Video Conference"),
                ]
                cursor.executemany(
                    """
                    INSERT INTO RoomEquipment (room_id, equipment_id)
                    SELECT r.id, e.id FROM Rooms AS r, Equipment AS e
                    WHERE r.name = ? AND e.name = ?;
                    """,
                    room_equipment,
                )

                users = [
                    (f"Employee {index}", f"employee{index}@example.com")
                    for index in range(1, 21)
                ]
                cursor.executemany(
                    "INSERT INTO Users (name, email) VALUES (?, ?);",
                    users,
                )
                conn.commit()
            logger.info(
                "Demo seed completed | rooms=%s | equipment=%s | users=%s",
                len(rooms),
                len(equipment),
                len(users),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, name: str, email: str) -> User:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Users (name, email) VALUES (?, ?);",
                (name, email),
            )
            conn.commit()
            return User(user_id=int(cursor.lastrowid), name=name, email=email)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, name, email FROM Users WHERE email = ?;",
                (email,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return User(user_id=int(row["id"]), name=str(row["name"]), email=str(row["email"]))

    def count_existing_users(self, user_ids: Sequence[int]) -> int:
        """Count distinct ids among `user_ids` that belong to a stored user."""
        distinct_ids = sorted(set(user_ids))
        if not distinct_ids:
            return 0
        placeholders = ",".join("?" for _ in distinct_ids)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT COUNT(*) AS count FROM Users WHERE id IN ({placeholders});",
                tuple(distinct_ids),
            )
            return int(cursor.fetchone()["count"])

    # ------------------------------------------------------------------
    # Rooms and equipment
    # ------------------------------------------------------------------

    def create_room(
        self,
        name: str,
        capacity: int,
        hourly_rate: float,
        location: Optional[str] = None,
    ) -> Room:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Rooms (name, capacity, hourly_rate, location)
                VALUES (?, ?, ?, ?);
                """,
                (name, capacity, hourly_rate, location),
            )
            conn.commit()
            return Room(
                room_id=int(cursor.lastrowid),
                name=name,
                capacity=capacity,
                hourly_rate=float(hourly_rate),
                location=location,
            )

    def _load_equipment_links(
        self,
        cursor: sqlite3.Cursor,
        room_ids: Sequence[int],
    ) -> dict[int, list[RoomEquipmentLink]]:
        links: dict[int, list[RoomEquipmentLink]] = {room_id: [] for room_id in room_ids}
        if not room_ids:
            return links
        placeholders = ",".join("?" for _ in room_ids)
        cursor.execute(
            f"""
            SELECT re.id, re.room_id, re.equipment_id, e.name AS equipment_name
            FROM RoomEquipment AS re
            LEFT JOIN Equipment AS e ON e.id = re.equipment_id
            WHERE re.room_id IN ({placeholders})
            ORDER BY re.id ASC;
            """,
            tuple(room_ids),
        )
        for row in cursor.fetchall():
            equipment_id = int(row["equipment_id"]) if row["equipment_id"] is not None else None
            equipment = (
                Equipment(equipment_id=equipment_id, name=str(row["equipment_name"]))
                if equipment_id is not None and row["equipment_name"] is not None
                else None
            )
            links[int(row["room_id"])].append(
                RoomEquipmentLink(
                    link_id=int(row["id"]),
                    room_id=int(row["room_id"]),
                    equipment_id=equipment_id,
                    equipment=equipment,
                )
            )
        return links

    def _rooms_from_rows(
        self,
        cursor: sqlite3.Cursor,
        rows: Sequence[sqlite3.Row],
        with_equipment: bool,
    ) -> list[Room]:
        room_ids = [int(row["id"]) for row in rows]
        links = self._load_equipment_links(cursor, room_ids) if with_equipment else {}
        return [
            Room(
                room_id=int(row["id"]),
                name=str(row["name"]) if row["name"] is not None else None,
                capacity=int(row["capacity"]),
                hourly_rate=float(row["hourly_rate"]),
                location=str(row["location"]) if row["location"] is not None else None,
                equipment=tuple(links.get(int(row["id"]), ())),
            )
            for row in rows
        ]

    def list_rooms(self, with_equipment: bool = True) -> list[Room]:
        """Return the full room catalogue in deterministic id order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, capacity, hourly_rate, location
                FROM Rooms
                ORDER BY id ASC;
                """
            )
            rows = cursor.fetchall()
            return self._rooms_from_rows(cursor, rows, with_equipment)

    def get_room(self, room_id: int, with_equipment: bool = True) -> Optional[Room]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, name, capacity, hourly_rate, location FROM Rooms WHERE id = ?;",
                (room_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._rooms_from_rows(cursor, [row], with_equipment)[0]

    def get_room_by_name(self, name: str) -> Optional[Room]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, name, capacity, hourly_rate, location FROM Rooms WHERE name = ?;",
                (name,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._rooms_from_rows(cursor, [row], with_equipment=False)[0]

    def create_equipment(self, name: str) -> Equipment:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT INTO Equipment (name) VALUES (?);", (name,))
            conn.commit()
            return Equipment(equipment_id=int(cursor.lastrowid), name=name)

    def get_equipment(self, equipment_id: int) -> Optional[Equipment]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, name FROM Equipment WHERE id = ?;", (equipment_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return Equipment(equipment_id=int(row["id"]), name=str(row["name"]))

    def get_equipment_by_name(self, name: str) -> Optional[Equipment]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, name FROM Equipment WHERE name = ?;", (name,))
            row = cursor.fetchone()
            if row is None:
                return None
            return Equipment(equipment_id=int(row["id"]), name=str(row["name"]))

    def list_equipment(self) -> list[Equipment]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, name FROM Equipment ORDER BY id ASC;")
            return [
                Equipment(equipment_id=int(row["id"]), name=str(row["name"]))
                for row in cursor.fetchall()
            ]

    def create_room_equipment(self, room_id: int, equipment_id: int) -> RoomEquipmentLink:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO RoomEquipment (room_id, equipment_id) VALUES (?, ?);",
                (room_id, equipment_id),
            )
            link_id = int(cursor.lastrowid)
            cursor.execute("SELECT id, name FROM Equipment WHERE id = ?;", (equipment_id,))
            row = cursor.fetchone()
            conn.commit()
            return RoomEquipmentLink(
                link_id=link_id,
                room_id=room_id,
                equipment_id=equipment_id,
                equipment=Equipment(equipment_id=int(row["id"]), name=str(row["name"])),
            )

    def update_room(self, room_id: int, changes: Mapping[str, object]) -> bool:
        """Apply column changes to one room; returns False when the id is unknown."""
        unknown = set(changes) - set(_ROOM_MUTABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unsupported room fields: {', '.join(sorted(unknown))}")
        if not changes:
            return self.get_room(room_id, with_equipment=False) is not None
        columns = [column for column in _ROOM_MUTABLE_COLUMNS if column in changes]
        assignments = ", ".join(f"{column} = ?" for column in columns)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE Rooms SET {assignments} WHERE id = ?;",
                (*[changes[column] for column in columns], room_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_room(self, room_id: int) -> bool:
        """Remove a room; its links go with it and its bookings lose the room reference."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Rooms WHERE id = ?;", (room_id,))
            conn.commit()
            return cursor.rowcount > 0

    def update_equipment(self, equipment_id: int, name: str) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE Equipment SET name = ? WHERE id = ?;",
                (name, equipment_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_equipment(self, equipment_id: int) -> bool:
        """Remove equipment; existing room links keep a dangling, null reference."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM Equipment WHERE id = ?;", (equipment_id,))
            conn.commit()
            return cursor.rowcount > 0

    def list_room_equipment(self, room_id: Optional[int] = None) -> list[RoomEquipmentLink]:
        with self._connect() as conn:
            cursor = conn.cursor()
            if room_id is None:
                cursor.execute("SELECT id FROM Rooms ORDER BY id ASC;")
                room_ids = [int(row["id"]) for row in cursor.fetchall()]
            else:
                room_ids = [room_id]
            links = self._load_equipment_links(cursor, room_ids)
            return sorted(
                (link for room_links in links.values() for link in room_links),
                key=lambda link: link.link_id,
            )

    def get_room_equipment(self, link_id: int) -> Optional[RoomEquipmentLink]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT room_id FROM RoomEquipment WHERE id = ?;", (link_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            links = self._load_equipment_links(cursor, [int(row["room_id"])])
            for link in links[int(row["room_id"])]:
                if link.link_id == link_id:
                    return link
            return None

    def update_room_equipment(self, link_id: int, room_id: int, equipment_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE RoomEquipment SET room_id = ?, equipment_id = ? WHERE id = ?;",
                (room_id, equipment_id, link_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_room_equipment(self, link_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM RoomEquipment WHERE id = ?;", (link_id,))
            conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Meeting requests
    # ------------------------------------------------------------------

    def create_meeting_request(self, data: MeetingRequestData) -> MeetingRequest:
        """Insert a request in `pending` status and return the stored record."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO MeetingRequests (
                    organizer_id,
                    duration,
                    required_equipment,
                    preferred_start,
                    flexibility,
                    priority,
                    attendees,
                    status
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 'pending');
                """,
                (
                    data.organizer_id,
                    data.duration,
                    json.dumps(list(data.required_equipment)),
                    _format_instant(data.preferred_start),
                    data.flexibility,
                    data.priority,
                    json.dumps(list(data.attendees)),
                ),
            )
            conn.commit()
            return MeetingRequest(
                request_id=int(cursor.lastrowid),
                organizer_id=data.organizer_id,
                duration=data.duration,
                preferred_start=to_utc(data.preferred_start),
                attendees=tuple(data.attendees),
                required_equipment=tuple(data.required_equipment),
                flexibility=data.flexibility,
                priority=data.priority,
                status="pending",
            )

    def get_meeting_request(self, request_id: int) -> Optional[MeetingRequest]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    id,
                    organizer_id,
                    duration,
                    required_equipment,
                    preferred_start,
                    flexibility,
                    priority,
                    attendees,
                    status
                FROM MeetingRequests
                WHERE id = ?;
                """,
                (request_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_meeting_request(row)

    @staticmethod
    def _set_request_status(cursor: sqlite3.Cursor, request_id: int, status: str) -> int:
        cursor.execute(
            "UPDATE MeetingRequests SET status = ? WHERE id = ?;",
            (status, request_id),
        )
        return cursor.rowcount

    def update_meeting_request_status(self, request_id: int, status: str) -> bool:
        with self._connect() as conn:
            updated = self._set_request_status(conn.cursor(), request_id, status)
            conn.commit()
            return updated > 0

    def count_meeting_requests(self) -> int:
        """Return persisted request count for diagnostics and tests."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM MeetingRequests;")
            return int(cursor.fetchone()["count"])

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def list_confirmed_bookings(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Booking]:
        """Return confirmed bookings, optionally only those overlapping [start, end)."""
        clauses = ["status = 'confirmed'"]
        params: list[str] = []
        if end is not None:
            clauses.append("start_at < ?")
            params.append(_format_instant(end))
        if start is not None:
            clauses.append("end_at > ?")
            params.append(_format_instant(start))
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_BOOKING_COLUMNS}
                FROM Bookings
                WHERE {" AND ".join(clauses)}
                ORDER BY start_at ASC, id ASC;
                """,
                tuple(params),
            )
            return [_row_to_booking(row) for row in cursor.fetchall()]

    def list_bookings(
        self,
        *,
        room_id: Optional[int] = None,
        status: Optional[str] = None,
        organizer_id: Optional[int] = None,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
    ) -> list[Booking]:
        """Filtered booking listing, newest start first."""
        clauses: list[str] = []
        params: list[object] = []
        if room_id is not None:
            clauses.append("b.room_id = ?")
            params.append(room_id)
        if status is not None:
            clauses.append("b.status = ?")
            params.append(status)
        if organizer_id is not None:
            clauses.append("mr.organizer_id = ?")
            params.append(organizer_id)
        # Each bound applies on its own; both together form a closed range.
        if start_from is not None:
            clauses.append("b.start_at >= ?")
            params.append(_format_instant(start_from))
        if start_to is not None:
            clauses.append("b.start_at <= ?")
            params.append(_format_instant(start_to))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT
                    b.id,
                    b.meeting_request_id,
                    b.room_id,
                    b.start_at,
                    b.end_at,
                    b.status,
                    b.checked_in_at
                FROM Bookings AS b
                INNER JOIN MeetingRequests AS mr ON mr.id = b.meeting_request_id
                {where}
                ORDER BY b.start_at DESC, b.id DESC;
                """,
                tuple(params),
            )
            return [_row_to_booking(row) for row in cursor.fetchall()]

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_BOOKING_COLUMNS} FROM Bookings WHERE id = ?;",
                (booking_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_booking(row)

    def confirm_booking(
        self,
        *,
        meeting_request_id: int,
        room_id: int,
        start_at: datetime,
        end_at: datetime,
        attendee_ids: Iterable[int],
        buffer_minutes: int,
    ) -> Booking:
        """Atomically insert a confirmed booking, its attendees, and approve the request.

        The buffered overlap check is repeated under a write lock so two
        allocation calls cannot both confirm the same room and interval.
        """
        buffer = timedelta(minutes=buffer_minutes)
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id
                FROM Bookings
                WHERE room_id = ?
                  AND status = 'confirmed'
                  AND start_at < ?
                  AND end_at > ?
                LIMIT 1;
                """,
                (
                    room_id,
                    _format_instant(end_at + buffer),
                    _format_instant(start_at - buffer),
                ),
            )
            conflict = cursor.fetchone()
            if conflict is not None:
                raise BookingConflictError(
                    f"Room {room_id} already has booking {int(conflict['id'])} "
                    "overlapping the requested interval"
                )

            cursor.execute(
                """
                INSERT INTO Bookings (meeting_request_id, room_id, start_at, end_at, status)
                VALUES (?, ?, ?, ?, 'confirmed');
                """,
                (
                    meeting_request_id,
                    room_id,
                    _format_instant(start_at),
                    _format_instant(end_at),
                ),
            )
            booking_id = int(cursor.lastrowid)
            self._insert_booking_attendees(cursor, booking_id, attendee_ids)
            self._set_request_status(cursor, meeting_request_id, "approved")
            conn.commit()
        return Booking(
            booking_id=booking_id,
            meeting_request_id=meeting_request_id,
            room_id=room_id,
            start_at=to_utc(start_at),
            end_at=to_utc(end_at),
            status="confirmed",
        )

    @staticmethod
    def _insert_booking_attendees(
        cursor: sqlite3.Cursor,
        booking_id: int,
        user_ids: Iterable[int],
    ) -> int:
        rows = [(booking_id, user_id) for user_id in dict.fromkeys(user_ids)]
        if not rows:
            return 0
        cursor.executemany(
            """
            INSERT OR IGNORE INTO BookingAttendees (booking_id, user_id)
            VALUES (?, ?);
            """,
            rows,
        )
        return cursor.rowcount

    def add_booking_attendees(self, booking_id: int, user_ids: Iterable[int]) -> int:
        """Link users to a booking; already linked users are skipped. Returns rows added."""
        with self._connect() as conn:
            added = self._insert_booking_attendees(conn.cursor(), booking_id, user_ids)
            conn.commit()
            return added

    def list_booking_attendees(self, booking_id: int) -> list[User]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT u.id, u.name, u.email
                FROM BookingAttendees AS ba
                INNER JOIN Users AS u ON u.id = ba.user_id
                WHERE ba.booking_id = ?
                ORDER BY u.id ASC;
                """,
                (booking_id,),
            )
            return [
                User(user_id=int(row["id"]), name=str(row["name"]), email=str(row["email"]))
                for row in cursor.fetchall()
            ]

    def remove_booking_attendee(self, booking_id: int, user_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM BookingAttendees WHERE booking_id = ? AND user_id = ?;",
                (booking_id, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def update_booking_status(self, booking_id: int, status: str) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE Bookings SET status = ? WHERE id = ?;",
                (status, booking_id),
            )
            conn.commit()

    def update_booking_check_in(self, booking_id: int, checked_in_at: datetime) -> bool:
        """Stamp the check-in only on a confirmed, not yet checked-in booking.

        Returns False when the booking was cancelled or checked in meanwhile.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Bookings
                SET checked_in_at = ?
                WHERE id = ?
                  AND status = 'confirmed'
                  AND checked_in_at IS NULL;
                """,
                (_format_instant(checked_in_at), booking_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def release_unchecked_bookings(self, cutoff: datetime) -> int:
        """Cancel confirmed, never-checked-in bookings starting at or before `cutoff`."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Bookings
                SET status = 'cancelled'
                WHERE status = 'confirmed'
                  AND checked_in_at IS NULL
                  AND start_at <= ?;
                """,
                (_format_instant(cutoff),),
            )
            conn.commit()
            return int(cursor.rowcount)
