#!/usr/bin/env python3

from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import mysql.connector.errors
from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.database import Connection
from ducops.exceptions import (NotEnoughParameters, InvalidParameter,
                               RecordNotFound, RecordConflict, RecordInUse,
                               InvalidReference, DatabaseError)
from ducops.logger import Logger


class BaseResource:
    """Base class for every table exposed through the API. Subclasses describe
    their table with class attributes and only override the operations that
    don't follow the usual shape."""
    endpoint: str = None
    table: str = None
    label: str = None
    noun: str = None
    record_name: str = None
    id_label: str = None
    pk: str = 'id'
    pk_type: type = str
    pk_generator: str = None
    alias: str = None
    select_sql: str = None
    order_by: str = None

    # Validation and column mapping.
    required: tuple[tuple[str, str], ...] = ()
    insert_columns: tuple[str, ...] = ()
    defaults: dict[str, Any] = {}
    update_columns: tuple[str, ...] = ()
    json_columns: tuple[str, ...] = ()
    bool_columns: tuple[str, ...] = ()
    numeric_columns: tuple[str, ...] = ()

    # Database error translation.
    duplicate_message: str = None
    update_duplicate_message: str = None
    reference_message: str = None
    referenced_message: str = None
    dependencies: tuple[tuple[str, str, str], ...] = ()

    # What the resource supports over HTTP.
    collection_methods: tuple[str, ...] = ('GET', 'POST')
    item_methods: tuple[str, ...] = ('GET', 'PUT', 'DELETE')
    multipart: bool = False
    batch: bool = False

    def __init__(self, conn: Connection, logger: Logger):
        self.conn = conn
        self.logger = logger

        if self.noun is None:
            self.noun = self.label.lower()
        if self.alias is None:
            self.alias = self.table

    def list(self, args: MultiDict) -> list[dict]:
        """Lists the records, optionally filtered by the query string."""
        conds, params = self.filters(args)
        stmt = self.select_stmt(conds)
        if self.order_by is not None:
            stmt += f' ORDER BY {self.order_by}'

        with self.db_errors('fetch'):
            rows = database.fetch_all(self.conn, stmt, params)

        return self.expand([self.row(r) for r in rows])

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        """Builds the WHERE conditions out of the query string."""
        return [], []

    def get(self, record_id: str) -> dict:
        """Gets a single record or complains that it doesn't exist."""
        key = self.parse_id(record_id)
        with self.db_errors('fetch'):
            record = self.find(key)
        if record is None:
            raise RecordNotFound(f'{self.label} not found')

        return record

    def find(self, key) -> Optional[dict]:
        """Looks up a record by its primary key."""
        stmt = self.select_stmt([f'{self.alias}.{self.pk} = %s'])
        record = self.row(database.fetch_one(self.conn, stmt, (key,)))
        if record is None:
            return None

        return self.expand([record])[0]

    def expand(self, records: list[dict]) -> list[dict]:
        """Attaches anything that lives outside of the main table."""
        return records

    def fetch_children(self, stmt: str, column: str, keys: list,
                       key: str = None, order_by: str = None,
                       json_columns: tuple[str, ...] = (),
                       bool_columns: tuple[str, ...] = ()) -> dict:
        """Fetches the child rows of a set of records, grouped by the key of
        the record they belong to."""
        grouped = {k: [] for k in keys}
        if not keys:
            return grouped

        stmt += f' WHERE {column} IN ({database.placeholders(len(keys))})'
        if order_by is not None:
            stmt += f' ORDER BY {order_by}'

        key = key or column.split('.')[-1]
        for row in database.fetch_all(self.conn, stmt, keys):
            grouped.setdefault(row[key], []).append(database.normalize_row(
                row, json_columns=json_columns, bool_columns=bool_columns))

        return grouped

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Creates a new record."""
        self.check_required(body)
        self.validate(body)

        values = self.insert_values(body)
        cols = list(values.keys())
        with self.db_errors('create'):
            lastrowid, _ = database.execute(
                self.conn,
                f'INSERT INTO {self.table} ({", ".join(cols)}) '
                f'VALUES ({database.placeholders(len(cols))})',
                [self.encode(col, values[col]) for col in cols])
        self.conn.commit()

        key = values.get(self.pk) or lastrowid
        self.logger.info(f'{self.table}_created',
                         f'Created {self.noun} {key}')
        return self.find(key)

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Updates only the fields that were supplied."""
        key = self.parse_id(record_id)
        if not body:
            raise NotEnoughParameters('No fields provided for update')

        fields = {col: val for col, val in body.items()
                  if col in self.update_columns}
        if not fields:
            raise InvalidParameter('No valid fields provided for update')
        self.validate_update(fields)

        with self.db_errors('update', duplicate=self.update_duplicate_message):
            _, count = database.execute(
                self.conn,
                f'UPDATE {self.table} SET {database.assignments(fields)}, '
                f'updated_at = NOW() WHERE {self.pk} = %s',
                [self.encode(col, val) for col, val in fields.items()] +
                [key])
        if count == 0:
            raise RecordNotFound(f'{self.record_name or self.label} not found '
                                 'or no changes made')
        self.conn.commit()

        self.logger.info(f'{self.table}_updated',
                         f'Updated {self.noun} {key}',
                         {'fields': list(fields.keys())})
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        """Deletes a record as long as nothing else depends on it."""
        key = self.parse_id(record_id)
        self.check_dependencies(key)

        with self.db_errors('delete'):
            _, count = database.execute(
                self.conn, f'DELETE FROM {self.table} WHERE {self.pk} = %s',
                (key,))
        if count == 0:
            raise RecordNotFound(f'{self.label} not found')
        self.conn.commit()

        self.logger.info(f'{self.table}_deleted', f'Deleted {self.noun} {key}')
        return {'message': f'{self.record_name or self.label} {key} deleted '
                           'successfully'}

    def check_required(self, body: dict):
        """Ensures every required field has a value."""
        for field, message in self.required:
            if is_blank(body.get(field)):
                raise NotEnoughParameters(message)

    def validate(self, body: dict):
        """Extra checks performed before a record is created."""

    def validate_update(self, fields: dict):
        """Extra checks performed before a record is updated."""

    def check_dependencies(self, key):
        """Refuses to delete records that are still referenced."""
        for table, column, message in self.dependencies:
            if database.exists(self.conn, table, column, key):
                self.logger.info(f'{self.table}_delete_blocked',
                                 f'Refused to delete {self.noun} {key} since '
                                 f'{table}.{column} references it')
                raise RecordInUse(f'Cannot delete {self.noun}', message)

    def insert_values(self, body: dict) -> dict:
        """Picks the columns to be inserted from the request body, filling in
        the defaults and generated keys."""
        values = {}
        for col in self.insert_columns:
            value = body.get(col)
            if value is None:
                value = self.defaults.get(col)
            values[col] = value

        # Generate our own primary key when the database can't.
        if self.pk_generator is not None and not values.get(self.pk):
            values[self.pk] = self.generate_key()

        return values

    def generate_key(self) -> str:
        """Generates a primary key for a new record."""
        if self.pk_generator == 'uuid':
            return str(uuid.uuid4())

        raise NotImplementedError(f'Unknown key generator {self.pk_generator}')

    def encode(self, col: str, value):
        """Converts a value into something the database driver accepts."""
        if col in self.json_columns and value is not None:
            return json.dumps(value)

        return value

    def parse_id(self, record_id: str):
        """Converts the identifier in the URL into a primary key."""
        if self.pk_type is int:
            try:
                return int(record_id)
            except (TypeError, ValueError):
                raise InvalidParameter(
                    f'Invalid {self.id_label or self.label} ID format')

        return record_id

    def select_stmt(self, conds: list[str] = None) -> str:
        """Builds the SELECT statement used for reading records."""
        stmt = self.select_sql or f'SELECT * FROM {self.table}'
        if conds:
            stmt += ' WHERE ' + ' AND '.join(conds)

        return stmt

    def row(self, raw: Optional[dict]) -> Optional[dict]:
        """Converts a database row into the response representation."""
        record = database.normalize_row(raw, json_columns=self.json_columns,
                                        bool_columns=self.bool_columns)
        if record is not None:
            for col in self.numeric_columns:
                if record.get(col) is not None:
                    record[col] = float(record[col])

        return record

    @contextmanager
    def db_errors(self, action: str, duplicate: str = None) -> Iterator:
        """Translates database errors into the API's error responses."""
        try:
            yield
        except mysql.connector.errors.Error as e:
            self.conn.rollback()
            title = f'Failed to {action} {self.noun}'
            if database.is_duplicate(e):
                raise RecordConflict(
                    title, duplicate or self.duplicate_message or
                    f'A {self.noun} with these details already exists.',
                    logger=self.logger)
            elif database.is_missing_reference(e):
                raise InvalidReference(
                    title, self.reference_message or
                    f'The {self.noun} references a record that does not '
                    'exist.', logger=self.logger)
            elif database.is_referenced(e):
                raise RecordInUse(
                    title, self.referenced_message or
                    f'This {self.noun} is referenced by other records.',
                    logger=self.logger)

            raise DatabaseError(e, title=title,
                                logger=self.logger)

    def client_id_by_name(self, name: str) -> int:
        """Resolves the name of a client into its ID."""
        row = database.fetch_one(
            self.conn, 'SELECT id FROM clients WHERE name = %s LIMIT 1',
            (name,))
        if row is None:
            raise InvalidParameter(
                f"Client '{name}' not found. Please add client first.")

        return row['id']

    @classmethod
    def allowed_methods(cls, item: bool) -> tuple[str, ...]:
        """HTTP methods supported on the collection or on a single item."""
        return cls.item_methods if item else cls.collection_methods


def is_blank(value) -> bool:
    """Checks if a request value should be treated as missing."""
    if value is None:
        return True
    elif isinstance(value, str):
        return value.strip() == ''
    elif isinstance(value, (list, dict)):
        return len(value) == 0

    return False


def as_bool(value) -> bool:
    """Interprets booleans coming from JSON bodies and HTML forms alike."""
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')

    return bool(value)


def as_int(value, title: str) -> Optional[int]:
    """Parses an optional integer, complaining with the given title."""
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return None

    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidParameter(title)


def parse_json_field(value, title: str, default=None):
    """Decodes a JSON document sent as a form field."""
    if value is None or value == '':
        return default
    elif not isinstance(value, str):
        return value

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        raise InvalidParameter(title)


def as_float(value, title: str) -> Optional[float]:
    """Parses an optional decimal number, complaining with the given title."""
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return None

    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(title)


def uploaded_files(files: Optional[MultiDict], prefix: str) -> list:
    """Gets every uploaded file sent in a field starting with a prefix, such as
    the numbered fields of a multiple file input."""
    if files is None:
        return []

    return [file for field, file in files.items(multi=True)
            if field.startswith(prefix) and file]
