import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from errors import PermissionDenied, TransientStoreError
from rooms import MAX_FLOORS, all_rooms


# PostgreSQL SQLSTATE for insufficient_privilege (row level security, missing grants)
PG_INSUFFICIENT_PRIVILEGE = "42501"


@dataclass
class RoomRecord:
    room_number: int
    is_available: bool = True
    leaving_date: Optional[datetime] = None


@dataclass
class CustomerRecord:
    name: str
    phone_number: str
    age: int
    room_number: int
    leaving_date: Optional[datetime]
    id: Optional[str] = None
    checked_in_at: Optional[datetime] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_iso(value) -> Optional[datetime]:
    """Parse a stored leaving date; naive values are taken as UTC."""
    if value is None or value == "" or value == "null":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class InventoryStore:
    """Room and customer record store.

    Every mutating call stands alone: there is no transaction spanning
    mark_occupied and insert_customer, so a failure between the two leaves
    the room occupied without a customer row.
    """

    persistent = False
    label = "store"

    def __init__(self, max_floors: int = MAX_FLOORS):
        self.max_floors = max_floors

    def seed_if_empty(self) -> int:
        raise NotImplementedError

    def list_rooms(self) -> list[RoomRecord]:
        raise NotImplementedError

    def list_occupied(self) -> list[RoomRecord]:
        return [r for r in self.list_rooms() if not r.is_available]

    def list_customers(self) -> list[CustomerRecord]:
        raise NotImplementedError

    def mark_occupied(self, room_number: int, leaving_date: datetime) -> None:
        raise NotImplementedError

    def mark_available(self, room_numbers: Iterable[int]) -> None:
        raise NotImplementedError

    def insert_customer(self, record: CustomerRecord) -> CustomerRecord:
        raise NotImplementedError


class LocalStore(InventoryStore):
    """In-memory store used when no database is configured (demo mode)."""

    label = "Local (in-memory)"

    def __init__(self, max_floors: int = MAX_FLOORS):
        super().__init__(max_floors)
        self._rooms: dict[int, RoomRecord] = {}
        self._customers: list[CustomerRecord] = []
        self.seed_if_empty()

    def seed_if_empty(self) -> int:
        if self._rooms:
            return 0
        for room in all_rooms(self.max_floors):
            self._rooms[room.room_number] = RoomRecord(room.room_number, True, None)
        return len(self._rooms)

    def list_rooms(self) -> list[RoomRecord]:
        return [replace(self._rooms[rn]) for rn in sorted(self._rooms)]

    def list_customers(self) -> list[CustomerRecord]:
        return [replace(c) for c in self._customers]

    def mark_occupied(self, room_number: int, leaving_date: datetime) -> None:
        room = self._rooms.get(room_number)
        if room is None:
            raise TransientStoreError(f"Room {room_number} not found")
        room.is_available = False
        room.leaving_date = leaving_date

    def mark_available(self, room_numbers: Iterable[int]) -> None:
        for rn in set(room_numbers):
            room = self._rooms.get(rn)
            if room is None:
                continue
            room.is_available = True
            room.leaving_date = None

    def insert_customer(self, record: CustomerRecord) -> CustomerRecord:
        stored = replace(
            record,
            id=uuid.uuid4().hex,
            checked_in_at=record.checked_in_at or utcnow(),
        )
        # newest first, like the customer list shows them
        self._customers.insert(0, stored)
        return replace(stored)


def _is_permission_error(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == PG_INSUFFICIENT_PRIVILEGE:
        return True
    if isinstance(orig, sqlite3.Error):
        msg = str(orig).lower()
        return "readonly database" in msg or "not authorized" in msg
    return False


def _stored_date(value, where: str) -> Optional[datetime]:
    """parse_iso for stored rows: an unreadable date is reported and read as missing."""
    try:
        return parse_iso(value)
    except ValueError:
        print(f"[store] Ignoring unreadable date {value!r} on {where}")
        return None


def translate_error(exc: SQLAlchemyError) -> Exception:
    if isinstance(exc, DBAPIError) and _is_permission_error(exc):
        return PermissionDenied(str(exc.orig))
    return TransientStoreError(str(exc))


class SqlStore(InventoryStore):
    """Durable store over a SQLAlchemy engine (PostgreSQL, or SQLite locally)."""

    persistent = True
    label = "SQL database"

    def __init__(self, url: str, max_floors: int = MAX_FLOORS, engine=None):
        super().__init__(max_floors)
        self.url = url
        self.engine = engine if engine is not None else create_engine(url, pool_pre_ping=True)

    # ---- internal helpers ----

    @contextmanager
    def _begin(self):
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise translate_error(e) from e

    def create_schema(self):
        with self._begin() as conn:
            conn.execute(text("""
            CREATE TABLE IF NOT EXISTS rooms (
                room_number INTEGER PRIMARY KEY,
                is_available BOOLEAN NOT NULL DEFAULT TRUE,
                leaving_date TEXT
            )
            """))
            conn.execute(text("""
            CREATE TABLE IF NOT EXISTS customer_details (
                id VARCHAR(32) PRIMARY KEY,
                name TEXT NOT NULL,
                phone_number TEXT NOT NULL,
                age INTEGER NOT NULL,
                room_number INTEGER REFERENCES rooms(room_number),
                leaving_date TEXT,
                created_at TEXT
            )
            """))

    def count(self, table: str) -> int:
        if table not in ("rooms", "customer_details"):
            raise ValueError(f"Unknown table: {table}")
        with self._begin() as conn:
            return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()

    # ---- rooms ----

    def seed_if_empty(self) -> int:
        with self._begin() as conn:
            if conn.execute(text("SELECT COUNT(*) FROM rooms")).scalar_one() > 0:
                return 0
            rows = [
                {"rn": r.room_number, "avail": True}
                for r in all_rooms(self.max_floors)
            ]
            # ON CONFLICT guards against another process seeding at the same time
            stmt = text("""
            INSERT INTO rooms (room_number, is_available, leaving_date)
            VALUES (:rn, :avail, NULL)
            ON CONFLICT (room_number) DO NOTHING
            """)
            inserted = 0
            for row in rows:
                # rows skipped by ON CONFLICT report 0
                inserted += max(conn.execute(stmt, row).rowcount, 0)
        print(f"[store] Seeded {inserted} rooms")
        return inserted

    def _room_rows(self, where: str = "", params: Optional[dict] = None) -> list[RoomRecord]:
        with self._begin() as conn:
            rows = conn.execute(text(f"""
            SELECT room_number, is_available, leaving_date
            FROM rooms
            {where}
            ORDER BY room_number
            """), params or {}).mappings().all()
        try:
            return [
                RoomRecord(
                    int(r["room_number"]),
                    bool(r["is_available"]),
                    _stored_date(r["leaving_date"], f"room {r['room_number']}"),
                )
                for r in rows
            ]
        except (TypeError, ValueError) as e:
            raise TransientStoreError(f"Unreadable room row: {e}") from e

    def list_rooms(self) -> list[RoomRecord]:
        return self._room_rows()

    def list_occupied(self) -> list[RoomRecord]:
        return self._room_rows("WHERE is_available = :avail", {"avail": False})

    def mark_occupied(self, room_number: int, leaving_date: datetime) -> None:
        with self._begin() as conn:
            result = conn.execute(text("""
            UPDATE rooms
            SET is_available = :avail, leaving_date = :leaving
            WHERE room_number = :rn
            """), {"avail": False, "leaving": to_iso(leaving_date), "rn": room_number})
            if result.rowcount == 0:
                raise TransientStoreError(f"Room {room_number} not found")

    def mark_available(self, room_numbers: Iterable[int]) -> None:
        numbers = sorted(set(room_numbers))
        if not numbers:
            return
        stmt = text("""
        UPDATE rooms
        SET is_available = :avail, leaving_date = NULL
        WHERE room_number IN :numbers
        """).bindparams(bindparam("numbers", expanding=True))
        with self._begin() as conn:
            conn.execute(stmt, {"avail": True, "numbers": numbers})

    # ---- customers ----

    def list_customers(self) -> list[CustomerRecord]:
        with self._begin() as conn:
            rows = conn.execute(text("""
            SELECT id, name, phone_number, age, room_number, leaving_date, created_at
            FROM customer_details
            ORDER BY created_at DESC, id
            """)).mappings().all()
        read_at = utcnow()
        try:
            return [
                CustomerRecord(
                    name=r["name"],
                    phone_number=str(r["phone_number"]),
                    age=int(r["age"]),
                    room_number=int(r["room_number"]),
                    leaving_date=_stored_date(r["leaving_date"], f"customer {r['id']}"),
                    id=r["id"],
                    # rows written before created_at existed fall back to the read time
                    checked_in_at=_stored_date(r["created_at"], f"customer {r['id']}") or read_at,
                )
                for r in rows
            ]
        except (TypeError, ValueError) as e:
            raise TransientStoreError(f"Unreadable customer row: {e}") from e

    def insert_customer(self, record: CustomerRecord) -> CustomerRecord:
        stored = replace(record, id=uuid.uuid4().hex)
        with self._begin() as conn:
            conn.execute(text("""
            INSERT INTO customer_details (id, name, phone_number, age, room_number, leaving_date, created_at)
            VALUES (:id, :name, :phone, :age, :rn, :leaving, :created)
            """), {
                "id": stored.id,
                "name": stored.name,
                "phone": stored.phone_number,
                "age": stored.age,
                "rn": stored.room_number,
                "leaving": to_iso(stored.leaving_date),
                "created": to_iso(stored.checked_in_at or utcnow()),
            })
        return stored


def open_store(database_url: str = "", max_floors: int = MAX_FLOORS) -> InventoryStore:
    """SqlStore when a database URL is configured, LocalStore otherwise."""
    if database_url:
        store = SqlStore(database_url, max_floors)
        print(f"[store] Using {store.engine.url.render_as_string(hide_password=True)}")
        return store
    print("[store] No HOTEL_DATABASE_URL set, running in demo mode with in-memory data")
    return LocalStore(max_floors)
