from datetime import timedelta

import pytest

from booking import AllocationEngine, ExpiryReconciler, HotelService, NewCustomer
from errors import PermissionDenied, TransientStoreError, Underage, ValidationError
from inventory import LocalStore, RoomRecord, SqlStore
from rooms import Category, metadata_of


def guest(age=30, days=1, name="Ana"):
    return NewCustomer(name=name, phone_number="5550100", age=age, days_of_stay=days)


def test_allocate_picks_first_matching_room_then_next_then_none(store, clock):
    service = HotelService(store, clock)

    assert service.allocate(guest(), 1, Category.AC) == 103
    assert service.allocate(guest(name="Bo"), 1, Category.AC) == 104
    assert service.allocate(guest(name="Cy"), 1, Category.AC) is None

    customers = service.list_customers()
    assert sorted(c.room_number for c in customers) == [103, 104]


def test_allocate_accepts_plain_category_ids(store, clock):
    service = HotelService(store, clock)
    assert service.allocate(guest(), 3, 4) == 307


def test_allocate_sets_leaving_date_from_days_of_stay(store, clock):
    service = HotelService(store, clock)
    room_no = service.allocate(guest(days=3), 2, Category.BEACH_VIEW_NON_AC)

    assert room_no == 205
    room = next(r for r in store.list_rooms() if r.room_number == room_no)
    assert not room.is_available
    assert room.leaving_date == clock.now + timedelta(days=3)
    customer = service.list_customers()[0]
    assert customer.name == "Ana"
    assert customer.leaving_date == room.leaving_date


@pytest.mark.parametrize("floor,category", [(1, Category.NON_AC), (5, Category.BEACH_VIEW_AC), (9, 2)])
def test_underage_guest_is_rejected_without_touching_store(store, clock, floor, category):
    before_rooms = store.list_rooms()
    service = HotelService(store, clock)

    with pytest.raises(Underage):
        service.allocate(guest(age=17), floor, category)

    assert store.list_rooms() == before_rooms
    assert store.list_customers() == []


def test_underage_rejected_even_when_store_is_broken(clock):
    class BrokenStore(LocalStore):
        def list_rooms(self):
            raise AssertionError("store must not be read")

    with pytest.raises(Underage):
        AllocationEngine(BrokenStore(), clock=clock).allocate(guest(age=17), 1, Category.AC)


def test_negative_stay_is_rejected(store, clock):
    with pytest.raises(ValidationError):
        HotelService(store, clock).allocate(guest(days=-1), 1, Category.AC)


def test_unknown_category_is_rejected(store, clock):
    with pytest.raises(ValueError):
        HotelService(store, clock).allocate(guest(), 1, 9)


def test_zero_day_stay_released_after_leaving_instant(store, clock):
    service = HotelService(store, clock)
    assert service.allocate(guest(days=0), 1, Category.AC) == 103

    # leaving date == now: not yet expired
    assert service.reconcile() == 0
    clock.advance(seconds=1)
    assert service.reconcile() == 1

    room = next(r for r in store.list_rooms() if r.room_number == 103)
    assert room.is_available
    assert room.leaving_date is None


def test_list_rooms_releases_expired_rooms(store, clock):
    service = HotelService(store, clock)
    service.allocate(guest(days=1), 4, Category.NON_AC)
    clock.advance(days=1, minutes=1)

    rooms = service.list_rooms()
    assert all(r.is_available for r in rooms)


def test_expired_room_is_reused_by_next_allocation(store, clock):
    service = HotelService(store, clock)
    assert service.allocate(guest(days=1), 1, Category.AC) == 103
    assert service.allocate(guest(days=5), 1, Category.AC) == 104
    clock.advance(days=2)
    assert service.allocate(guest(), 1, Category.AC) == 103


def test_reconcile_leaves_current_stays_alone(store, clock):
    store.mark_occupied(101, clock.now + timedelta(hours=1))
    store.mark_occupied(102, clock.now - timedelta(hours=1))

    assert ExpiryReconciler(store, clock).reconcile() == 1
    assert [r.room_number for r in store.list_occupied()] == [101]


def test_reconcile_ignores_occupied_rooms_without_leaving_date(clock):
    class OddStore(LocalStore):
        def list_occupied(self):
            return [RoomRecord(101, False, None)]

    assert ExpiryReconciler(OddStore(), clock).reconcile() == 0


def test_listed_rooms_agree_with_room_numbers(store, clock):
    service = HotelService(store, clock)
    service.allocate(guest(), 2, Category.AC)
    rooms = service.list_rooms()
    assert len(rooms) == 40
    for room in rooms:
        assert (room.floor, room.category) == metadata_of(room.room_number)


def test_list_rooms_skips_rows_outside_the_layout(sql_store, clock, capsys):
    from sqlalchemy import text
    with sql_store.engine.begin() as conn:
        conn.execute(text("INSERT INTO rooms (room_number, is_available) VALUES (109, 1)"))

    rooms = HotelService(sql_store, clock).list_rooms()
    assert 109 not in [r.room_number for r in rooms]
    assert len(rooms) == 40
    assert "Skipping room" in capsys.readouterr().out


class FlakyStore(LocalStore):
    def __init__(self, fail_with):
        super().__init__()
        self.fail_with = fail_with

    def list_occupied(self):
        raise self.fail_with


def test_reconcile_is_silent_on_permission_denied(clock, capsys):
    store = FlakyStore(PermissionDenied("rls"))
    assert ExpiryReconciler(store, clock).reconcile() == 0
    assert capsys.readouterr().out == ""


def test_reconcile_prints_other_failures(clock, capsys):
    store = FlakyStore(TransientStoreError("connection reset"))
    assert ExpiryReconciler(store, clock).reconcile() == 0
    assert "connection reset" in capsys.readouterr().out


def test_reconcile_failure_does_not_abort_allocation(clock):
    store = FlakyStore(TransientStoreError("connection reset"))
    assert HotelService(store, clock).allocate(guest(), 1, Category.AC) == 103


def test_reconcile_on_read_only_database_is_skipped(sql_store, tmp_path, clock, capsys):
    sql_store.mark_occupied(101, clock.now - timedelta(days=1))
    ro = SqlStore(f"sqlite:///file:{tmp_path / 'hotel_test.db'}?mode=ro&uri=true")

    assert ExpiryReconciler(ro, clock).reconcile() == 0
    assert "[reconcile]" not in capsys.readouterr().out
    assert [r.room_number for r in sql_store.list_occupied()] == [101]
    ro.engine.dispose()


def test_customer_insert_failure_leaves_room_occupied(clock):
    class NoCustomers(LocalStore):
        def insert_customer(self, record):
            raise TransientStoreError("insert failed")

    store = NoCustomers()
    with pytest.raises(TransientStoreError):
        HotelService(store, clock).allocate(guest(), 1, Category.AC)
    assert [r.room_number for r in store.list_occupied()] == [103]


def test_initialize_seeds_once(sqlite_url, clock):
    store = SqlStore(sqlite_url)
    store.create_schema()
    service = HotelService(store, clock)
    assert service.initialize() == 40
    assert service.initialize() == 0
    store.engine.dispose()


def test_initialize_propagates_permission_denied(clock):
    store = LocalStore()

    def locked():
        raise PermissionDenied("42501")

    store.seed_if_empty = locked
    with pytest.raises(PermissionDenied):
        HotelService(store, clock).initialize()


def test_initialize_swallows_other_store_errors(clock, capsys):
    store = LocalStore()

    def boom():
        raise TransientStoreError("timeout")

    store.seed_if_empty = boom
    assert HotelService(store, clock).initialize() == 0
    assert "non-fatal" in capsys.readouterr().out


def test_list_rooms_propagates_store_errors(clock):
    class Down(LocalStore):
        def list_rooms(self):
            raise TransientStoreError("down")

    with pytest.raises(TransientStoreError):
        HotelService(Down(), clock).list_rooms()


def test_concurrent_allocations_may_pick_the_same_room(clock):
    """Documents the unguarded race: both callers see 103 free before either writes."""
    store = LocalStore()
    first = AllocationEngine(store, clock=clock)
    second = AllocationEngine(store, clock=clock)

    seen_by_first = first.find_room(1, Category.AC)
    seen_by_second = second.find_room(1, Category.AC)
    assert seen_by_first == seen_by_second == 103

    store.mark_occupied(seen_by_first, clock.now + timedelta(days=1))
    store.mark_occupied(seen_by_second, clock.now + timedelta(days=2))
    # last writer wins, one room is occupied for two guests
    assert [r.room_number for r in store.list_occupied()] == [103]
    assert store.list_occupied()[0].leaving_date == clock.now + timedelta(days=2)


def _corrupt_leaving_date(sql_store, room_number, value):
    from sqlalchemy import text
    with sql_store.engine.begin() as conn:
        conn.execute(text("UPDATE rooms SET is_available = 0, leaving_date = :v WHERE room_number = :rn"),
                     {"v": value, "rn": room_number})


def test_unreadable_leaving_date_does_not_block_allocation(sql_store, clock):
    _corrupt_leaving_date(sql_store, 501, "tomorrow")
    service = HotelService(sql_store, clock)

    assert service.allocate(guest(), 1, Category.AC) == 103
    rooms = {r.room_number: r for r in service.list_rooms()}
    assert len(rooms) == 40
    assert not rooms[501].is_available
    assert rooms[501].leaving_date is None


def test_reconcile_still_releases_other_rooms_next_to_unreadable_row(sql_store, clock):
    _corrupt_leaving_date(sql_store, 501, "not a date")
    sql_store.mark_occupied(102, clock.now - timedelta(hours=1))

    assert ExpiryReconciler(sql_store, clock).reconcile() == 1
    assert [r.room_number for r in sql_store.list_occupied()] == [501]


def test_naive_clock_is_read_as_utc(store, clock):
    naive = clock.now.replace(tzinfo=None)
    service = HotelService(store, lambda: naive)

    assert service.allocate(guest(days=0), 1, Category.AC) == 103
    room = next(r for r in store.list_rooms() if r.room_number == 103)
    assert room.leaving_date == clock.now

    later = naive + timedelta(seconds=1)
    assert ExpiryReconciler(store, lambda: later).reconcile() == 1


def test_reconcile_prints_unexpected_value_errors(clock, capsys):
    store = FlakyStore(ValueError("bad row"))
    assert ExpiryReconciler(store, clock).reconcile() == 0
    assert "bad row" in capsys.readouterr().out
