#!/usr/bin/env python3

import datetime
import decimal
import json
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Sequence

from mysql.connector import MySQLConnection, errorcode
from mysql.connector.errors import Error as MySQLError
from mysql.connector.pooling import PooledMySQLConnection

# Anything we can get a cursor from.
Connection = MySQLConnection | PooledMySQLConnection


def fetch_all(conn: Connection, stmt: str,
              params: Sequence = ()) -> list[dict]:
    """Runs a query and returns all rows as dictionaries."""
    cur = conn.cursor(dictionary=True)
    cur.execute(stmt, tuple(params))
    rows = cur.fetchall()
    cur.close()

    return rows


def fetch_one(conn: Connection, stmt: str,
              params: Sequence = ()) -> Optional[dict]:
    """Runs a query and returns the first row as a dictionary, or None."""
    cur = conn.cursor(dictionary=True)
    cur.execute(stmt, tuple(params))
    row = cur.fetchone()

    # Drain anything left so the connection can be reused.
    if row is not None:
        cur.fetchall()
    cur.close()

    return row


def execute(conn: Connection, stmt: str,
            params: Sequence = ()) -> tuple[int, int]:
    """Executes a statement and returns the last inserted row ID and the
    number of affected rows."""
    cur = conn.cursor()
    cur.execute(stmt, tuple(params))
    result = (cur.lastrowid, cur.rowcount)
    cur.close()

    return result


def exists(conn: Connection, table: str, column: str, value) -> bool:
    """Checks if any row in a table has a column set to a value."""
    return fetch_one(conn, f'SELECT 1 AS found FROM {table} '
                           f'WHERE {column} = %s LIMIT 1',
                     (value,)) is not None


@contextmanager
def transaction(conn: Connection) -> Iterator[Connection]:
    """Wraps a block of statements in a transaction that is committed when the
    block finishes and rolled back if anything is raised."""
    # Flush whatever implicit transaction the request already started.
    if conn.in_transaction:
        conn.commit()

    conn.start_transaction()
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def placeholders(count: int) -> str:
    """Builds a list of parameter placeholders for a statement."""
    return ', '.join(['%s'] * count)


def assignments(columns: Iterable[str]) -> str:
    """Builds the SET part of an UPDATE statement."""
    return ', '.join(f'{col} = %s' for col in columns)


def is_duplicate(exc: MySQLError) -> bool:
    """Unique constraint violation."""
    return exc.errno == errorcode.ER_DUP_ENTRY


def is_missing_reference(exc: MySQLError) -> bool:
    """Foreign key pointing at a row that doesn't exist."""
    return exc.errno in (errorcode.ER_NO_REFERENCED_ROW,
                         errorcode.ER_NO_REFERENCED_ROW_2)


def is_referenced(exc: MySQLError) -> bool:
    """Row can't be removed or changed since another row points to it."""
    return exc.errno in (errorcode.ER_ROW_IS_REFERENCED,
                         errorcode.ER_ROW_IS_REFERENCED_2)


def format_time(delta: datetime.timedelta) -> str:
    """Converts the timedelta that MySQL uses for TIME columns into the usual
    HH:MM:SS notation."""
    seconds = int(delta.total_seconds())
    sign = '-' if seconds < 0 else ''
    seconds = abs(seconds)

    return (f'{sign}{seconds // 3600:02d}:{(seconds % 3600) // 60:02d}:'
            f'{seconds % 60:02d}')


def to_json_value(value):
    """Converts a single column value into something JSON can represent."""
    if isinstance(value, decimal.Decimal):
        return float(value)
    elif isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    elif isinstance(value, datetime.timedelta):
        return format_time(value)
    elif isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8')

    return value


def normalize_row(row: Optional[dict], json_columns: Iterable[str] = (),
                  bool_columns: Iterable[str] = ()) -> Optional[dict]:
    """Turns a database row into a JSON-friendly dictionary."""
    if row is None:
        return None

    result = {key: to_json_value(value) for key, value in row.items()}

    # Decode JSON documents stored as text.
    for col in json_columns:
        if isinstance(result.get(col), str):
            result[col] = json.loads(result[col])

    # MySQL hands us booleans as TINYINT.
    for col in bool_columns:
        if col in result and result[col] is not None:
            result[col] = bool(result[col])

    return result
