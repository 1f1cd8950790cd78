import sys
import threading
from pathlib import Path

# Ensure `poi_collector` package is importable when running pytest from the worker directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from poi_collector.core import db  # noqa: E402
from poi_collector.models import ScanStatus, SearchPage  # noqa: E402


class DummyCursor:
    def __init__(self, connection):
        self.connection = connection
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        self.connection.executed.append((" ".join(sql.split()), params))
        self.rowcount = self.connection.rowcount

    def fetchone(self):
        return self.connection.rows[0] if self.connection.rows else None

    def fetchall(self):
        return list(self.connection.rows)


class DummyConnection:
    def __init__(self):
        self.executed = []
        self.rows = []
        self.rowcount = 1
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return DummyCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class DummyPool:
    def __init__(self, connection):
        self.connection = connection
        self.get_called = False
        self.put_called = False

    def getconn(self):
        self.get_called = True
        return self.connection

    def putconn(self, conn):
        assert conn is self.connection
        self.put_called = True


@pytest.fixture
def dummy_pool():
    connection = DummyConnection()
    dummy = DummyPool(connection)
    db._connection_pool = dummy
    yield dummy
    db._connection_pool = None


class FakeLedger:
    """In-memory ledger with the same first-write-wins semantics as the table."""

    def __init__(self):
        self.records = {}
        self.writes = []
        self._lock = threading.Lock()

    @staticmethod
    def key(region, keyword, center, radius_m):
        return (region, keyword, center.lat, center.lng, int(radius_m))

    def lookup(self, region, keyword, center, radius_m):
        with self._lock:
            return self.records.get(self.key(region, keyword, center, radius_m))

    def record_completed(self, region, keyword, center, radius_m):
        return self._record(region, keyword, center, radius_m, ScanStatus.COMPLETED)

    def record_subdivided(self, region, keyword, center, radius_m):
        return self._record(region, keyword, center, radius_m, ScanStatus.SUBDIVIDED)

    def _record(self, region, keyword, center, radius_m, status):
        key = self.key(region, keyword, center, radius_m)
        with self._lock:
            if key in self.records:
                return False
            self.records[key] = status
            self.writes.append((status, int(radius_m)))
            return True

    def writes_with(self, status, radius_m):
        return [w for w in self.writes if w == (status, radius_m)]


class FakeSink:
    def __init__(self):
        self.places = {}
        self.calls = 0
        self._lock = threading.Lock()

    def save_places(self, rows):
        with self._lock:
            self.calls += 1
            inserted = 0
            for row in rows:
                if row["place_id"] not in self.places:
                    self.places[row["place_id"]] = row
                    inserted += 1
            return inserted


class FakeSearch:
    """Callable search stand-in; ``responder(keyword, center, radius_m, page)`` builds each page."""

    def __init__(self, responder):
        self.responder = responder
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, keyword, center, radius_m, page):
        with self._lock:
            self.calls.append((keyword, center, radius_m, page))
        return self.responder(keyword, center, radius_m, page)

    def calls_at(self, radius_m):
        return [call for call in self.calls if call[2] == radius_m]


def place_doc(place_id, lat, lng):
    return {"id": str(place_id), "place_name": f"Place {place_id}", "x": str(lng), "y": str(lat)}


def page_of(items, total_count=None, is_last_page=True):
    return SearchPage(
        items=list(items),
        total_count=len(items) if total_count is None else total_count,
        pageable_count=len(items) if total_count is None else total_count,
        is_last_page=is_last_page,
    )


@pytest.fixture
def fake_ledger():
    return FakeLedger()


@pytest.fixture
def fake_sink():
    return FakeSink()
