from dataclasses import dataclass
from datetime import timedelta, timezone
from typing import Callable, Optional

from errors import InvalidRoomNumber, PermissionDenied, StoreError, Underage, ValidationError
from inventory import CustomerRecord, InventoryStore, utcnow
from rooms import Category, Room, category_of, metadata_of


MIN_GUEST_AGE = 18


def read_clock(clock: Callable):
    """Current time from clock; naive values are taken as UTC."""
    now = clock()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now


@dataclass
class NewCustomer:
    name: str
    phone_number: str
    age: int
    days_of_stay: int = 1


class ExpiryReconciler:
    """Releases occupied rooms whose leaving date has passed."""

    def __init__(self, store: InventoryStore, clock: Callable = utcnow):
        self.store = store
        self.clock = clock

    def reconcile(self) -> int:
        """Release expired rooms in one bulk update; returns how many.

        Never raises. A permission failure is a skipped poll; any other
        failure is printed and reported as 0 released.
        """
        try:
            occupied = self.store.list_occupied()
            now = read_clock(self.clock)
            expired = [
                r.room_number for r in occupied
                if r.leaving_date is not None and r.leaving_date < now
            ]
            if not expired:
                return 0
            self.store.mark_available(expired)
        except PermissionDenied:
            return 0
        except (StoreError, TypeError, ValueError) as e:
            print(f"[reconcile] Error releasing expired rooms: {e}")
            return 0
        print(f"[reconcile] Released {len(expired)} room(s): {', '.join(str(rn) for rn in expired)}")
        return len(expired)


class AllocationEngine:
    """Finds the first free room on a floor/category and books it.

    There is no lock between choosing a room and marking it occupied, so two
    concurrent bookings for the same floor/category can pick the same room;
    the later write wins.
    """

    def __init__(self, store: InventoryStore, reconciler: Optional[ExpiryReconciler] = None, clock: Callable = utcnow):
        self.store = store
        self.clock = clock
        self.reconciler = reconciler or ExpiryReconciler(store, clock)

    def find_room(self, floor: int, category: Category) -> Optional[int]:
        for record in self.store.list_rooms():
            if not record.is_available:
                continue
            try:
                meta = metadata_of(record.room_number)
            except InvalidRoomNumber:
                continue
            if meta.floor == floor and meta.category == category:
                return record.room_number
        return None

    def allocate(self, customer: NewCustomer, floor: int, category) -> Optional[int]:
        if customer.age < MIN_GUEST_AGE:
            raise Underage(customer.age)
        if customer.days_of_stay < 0:
            raise ValidationError("Duration of stay cannot be negative")
        category = category_of(category)

        self.reconciler.reconcile()

        room_number = self.find_room(int(floor), category)
        if room_number is None:
            return None

        now = read_clock(self.clock)
        leaving_date = now + timedelta(days=customer.days_of_stay)
        self.store.mark_occupied(room_number, leaving_date)
        try:
            self.store.insert_customer(CustomerRecord(
                name=customer.name,
                phone_number=customer.phone_number,
                age=customer.age,
                room_number=room_number,
                leaving_date=leaving_date,
                checked_in_at=now,
            ))
        except StoreError as e:
            # room stays occupied; not rolled back
            print(f"[booking] Room {room_number} marked occupied but customer record failed: {e}")
            raise
        print(f"[booking] Room {room_number} assigned to {customer.name} until {leaving_date.isoformat()}")
        return room_number


class HotelService:
    """Entry point used by the UI: initialize, list, allocate."""

    def __init__(self, store: InventoryStore, clock: Callable = utcnow):
        self.store = store
        self.reconciler = ExpiryReconciler(store, clock)
        self.engine = AllocationEngine(store, self.reconciler, clock)

    @property
    def persistent(self) -> bool:
        return self.store.persistent

    def initialize(self) -> int:
        try:
            return self.store.seed_if_empty()
        except PermissionDenied:
            print("[store] Permission denied while seeding rooms. Run the database setup SQL.")
            raise
        except StoreError as e:
            print(f"[store] Unexpected error initializing rooms (non-fatal): {e}")
            return 0

    def reconcile(self) -> int:
        return self.reconciler.reconcile()

    def list_rooms(self) -> list[Room]:
        self.reconciler.reconcile()
        rooms = []
        for record in self.store.list_rooms():
            try:
                meta = metadata_of(record.room_number)
            except InvalidRoomNumber as e:
                print(f"[store] Skipping room: {e}")
                continue
            rooms.append(Room(
                room_number=record.room_number,
                floor=meta.floor,
                category=meta.category,
                is_available=record.is_available,
                leaving_date=record.leaving_date,
            ))
        return rooms

    def list_customers(self) -> list[CustomerRecord]:
        return self.store.list_customers()

    def allocate(self, customer: NewCustomer, floor: int, category) -> Optional[int]:
        return self.engine.allocate(customer, floor, category)
