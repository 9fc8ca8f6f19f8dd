from datetime import datetime, timedelta, timezone

import pytest

from inventory import LocalStore, SqlStore


class FakeClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'hotel_test.db'}"


@pytest.fixture
def sql_store(sqlite_url):
    store = SqlStore(sqlite_url)
    store.create_schema()
    store.seed_if_empty()
    yield store
    store.engine.dispose()


@pytest.fixture(params=["local", "sql"])
def store(request, sqlite_url):
    if request.param == "local":
        yield LocalStore()
        return
    store = SqlStore(sqlite_url)
    store.create_schema()
    store.seed_if_empty()
    yield store
    store.engine.dispose()
