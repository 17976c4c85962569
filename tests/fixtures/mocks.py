"""
Fake database handle for unit tests.

Records every statement passed to `exec`, `query` and `query_row` so tests
can assert on SQL text and bound arguments without a database.

Usage:
    def test_insert(fake_handle):
        fake_handle.lastrowid = 7
        sqlscan.insert(fake_handle, 'users', User(name='a'))
        assert fake_handle.statements == [('exec', sql, ('a',))]
"""
import pytest
from sqlscan.connection import ExecResult, Row
from sqlscan.dialect import get_dialect


class FakeCursor:
    """DB-API cursor over canned rows."""

    def __init__(self, rows=None, error=None, error_after=None):
        self.rows = list(rows or [])
        self.error = error
        self.error_after = error_after
        self.fetched = 0
        self.closed = False

    def _check(self):
        if self.error is not None and (self.error_after is None or self.fetched >= self.error_after):
            raise self.error

    def fetchone(self):
        self._check()
        if not self.rows:
            return None
        self.fetched += 1
        return self.rows.pop(0)

    def fetchmany(self, size=1):
        chunk = []
        while len(chunk) < size:
            self._check()
            if not self.rows:
                break
            self.fetched += 1
            chunk.append(self.rows.pop(0))
        return chunk

    def close(self):
        self.closed = True


class FakeHandle:
    """Handle that records statements and replays canned results.

    rows: rows returned by the next `query` (a new FakeCursor each call)
    returning: first row returned by `query_row`, None for no row
    lastrowid / rowcount: reported by `exec`
    error: exception raised by every handle call
    """

    def __init__(self, dialect=None):
        if dialect is not None:
            self.dialect = get_dialect(dialect)
        self.statements = []
        self.cursors = []
        self.rows = []
        self.returning = None
        self.lastrowid = None
        self.rowcount = 1
        self.error = None

    def _record(self, kind, sql, args):
        self.statements.append((kind, sql, args))
        if self.error is not None:
            raise self.error

    def exec(self, sql, *args):
        self._record('exec', sql, args)
        return ExecResult(rowcount=self.rowcount, lastrowid=self.lastrowid)

    def query(self, sql, *args):
        self._record('query', sql, args)
        cursor = FakeCursor(self.rows)
        self.cursors.append(cursor)
        return cursor

    def query_row(self, sql, *args):
        self._record('query_row', sql, args)
        return Row(self.returning)


@pytest.fixture
def fake_handle():
    """Fake handle without a dialect; operations use the process default."""
    return FakeHandle()


@pytest.fixture
def make_fake_handle():
    """Factory for fake handles bound to a dialect."""
    def factory(dialect=None):
        return FakeHandle(dialect)
    return factory


@pytest.fixture
def make_cursor():
    """Factory for fake cursors over canned rows."""
    def factory(rows=None, **kwargs):
        return FakeCursor(rows, **kwargs)
    return factory
