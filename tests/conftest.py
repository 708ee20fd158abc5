#!/usr/bin/env python3

import os
import tempfile

# Keep the logs and uploads of the test run away from the project folder.
_scratch = tempfile.mkdtemp(prefix='ducops-tests-')
os.environ.setdefault('LOG_DIR', os.path.join(_scratch, 'logs'))
os.environ.setdefault('UPLOAD_DIR', os.path.join(_scratch, 'uploads'))

import mysql.connector.errors
import pytest

import config
from ducops.logger import Logger


class FakeCursor:
    """Cursor that answers with whatever was scripted on its connection."""

    def __init__(self, conn, dictionary: bool = False):
        self.conn = conn
        self.dictionary = dictionary
        self.rows = []
        self.lastrowid = None
        self.rowcount = -1

    def execute(self, stmt: str, params=()):
        self.conn.executed.append((stmt, tuple(params)))
        result = self.conn.result_for(stmt)
        if 'error' in result:
            raise result['error']

        self.rows = list(result.get('rows', []))
        self.lastrowid = result.get('lastrowid', 0)
        self.rowcount = result.get('rowcount', 1)

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def close(self):
        pass


class FakeConnection:
    """Stands in for a pooled MySQL connection. Results are scripted with
    on() and matched against the statements in the order they were added."""

    def __init__(self):
        self.executed: list[tuple[str, tuple]] = []
        self.handlers: list[tuple[str, dict]] = []
        self.commits = 0
        self.rollbacks = 0
        self.in_transaction = False
        self.closed = False

    def on(self, fragment: str, rows: list = None, rowcount: int = None,
           lastrowid: int = None, error: Exception = None):
        """Scripts the result of the next statement containing a fragment."""
        result = {}
        if rows is not None:
            result['rows'] = rows
        if rowcount is not None:
            result['rowcount'] = rowcount
        if lastrowid is not None:
            result['lastrowid'] = lastrowid
        if error is not None:
            result['error'] = error
        self.handlers.append((fragment, result))
        return self

    def result_for(self, stmt: str) -> dict:
        for index, (fragment, result) in enumerate(self.handlers):
            if fragment in stmt:
                del self.handlers[index]
                return result

        # Unscripted statements find nothing but succeed.
        if stmt.lstrip().upper().startswith('SELECT'):
            return {'rows': [], 'rowcount': 0}
        return {'rows': [], 'rowcount': 1, 'lastrowid': 0}

    def statements(self, fragment: str) -> list[tuple[str, tuple]]:
        """Every executed statement containing a fragment."""
        return [(stmt, params) for stmt, params in self.executed
                if fragment in stmt]

    def cursor(self, dictionary: bool = False):
        return FakeCursor(self, dictionary)

    def start_transaction(self):
        self.in_transaction = True

    def commit(self):
        self.commits += 1
        self.in_transaction = False

    def rollback(self):
        self.rollbacks += 1
        self.in_transaction = False

    def is_connected(self):
        return not self.closed

    def close(self):
        self.closed = True


class FakePool:
    def __init__(self, conn: FakeConnection):
        self.conn = conn

    def get_connection(self):
        self.conn.closed = False
        return self.conn


def mysql_error(errno: int, msg: str = 'Simulated error'):
    """Builds the error raised by the driver for a given MySQL error code."""
    return mysql.connector.errors.IntegrityError(msg=msg, errno=errno)


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def logger() -> Logger:
    return Logger('tests', 'resources')


@pytest.fixture
def upload_dir(tmp_path, monkeypatch) -> str:
    """Points the upload folder at a temporary directory."""
    path = tmp_path / 'uploads'
    path.mkdir()
    monkeypatch.setitem(config._app, 'upload_dir', str(path))
    return str(path)


@pytest.fixture
def client(conn, monkeypatch, upload_dir):
    """Flask test client wired to a scripted database connection."""
    import app as ducops_app

    monkeypatch.setattr(ducops_app, 'db_conn_pool', FakePool(conn))
    ducops_app.app.config['TESTING'] = True
    return ducops_app.app.test_client()
