import sys

import config
from errors import PermissionDenied, StoreError
from inventory import SqlStore


# Run in the PostgreSQL SQL editor when the app reports missing permissions.
POSTGRES_SETUP_SQL = """
-- 1. Create tables if they don't exist
create table if not exists rooms (
  room_number integer primary key,
  is_available boolean not null default true,
  leaving_date text
);

create table if not exists customer_details (
  id varchar(32) primary key,
  name text not null,
  phone_number text not null,
  age integer not null,
  room_number integer references rooms(room_number),
  leaving_date text,
  created_at text
);

-- 2. Reset and enable permissions (fixes row level security errors)
alter table rooms enable row level security;
drop policy if exists "Allow all access to rooms" on rooms;
create policy "Allow all access to rooms" on rooms for all using (true) with check (true);

alter table customer_details enable row level security;
drop policy if exists "Allow all access to customer_details" on customer_details;
create policy "Allow all access to customer_details" on customer_details for all using (true) with check (true);
"""


def show_counts(store: SqlStore) -> dict:
    counts = {}
    for table in ["rooms", "customer_details"]:
        counts[table] = store.count(table)
        print(f"{table}: {counts[table]}")
    return counts


def migrate(url: str, max_floors: int = config.MAX_FLOORS) -> dict:
    store = SqlStore(url, max_floors)
    print(f"Preparing {store.engine.url.render_as_string(hide_password=True)}...")
    store.create_schema()
    seeded = store.seed_if_empty()
    if seeded:
        print(f"  ✅ {seeded} rooms seeded")
    else:
        print("  Rooms already present, nothing seeded")
    return show_counts(store)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    url = argv[0] if argv else config.DATABASE_URL
    if not url:
        print("Set HOTEL_DATABASE_URL or pass a database URL, e.g. python migrate.py sqlite:///hotel.db")
        return 2
    try:
        migrate(url)
    except PermissionDenied as e:
        print(f"  ❌ Permission denied: {e}")
        print("Run this SQL as the database owner, then retry:")
        print(POSTGRES_SETUP_SQL)
        return 1
    except StoreError as e:
        print(f"  ❌ {e}")
        return 1
    print("\n✅ Database ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
