#!/usr/bin/env python3

import json
import os
import sys

import mysql.connector.errors

from ducops import database, status
from ducops.resources.hht import hash_pin
from scripts import Command, Action

SCHEMA_FILE = os.path.join(os.path.dirname(os.path.dirname(
    os.path.abspath(__file__))), 'schema.sql')

# Reference data used to get a fresh installation going.
SEED_DATA = (
    ('delivery_units', ('id', 'name'), [
        ('EDM', 'Edmonton Delivery Unit'),
        ('BRK', 'Barking Delivery Unit'),
    ]),
    ('sub_depots', ('id', 'name', 'delivery_unit_id'), [
        (71, 'Sub Depot 71 (Edmonton)', 'EDM'),
        (62, 'Sub Depot 62 (Edmonton)', 'EDM'),
        (66, 'Sub Depot 66 (Barking)', 'BRK'),
        (39, 'Sub Depot 39 (Barking)', 'BRK'),
        (76, 'Sub Depot 76 (Edmonton)', 'EDM'),
    ]),
    ('team_members', ('id', 'name', 'position', 'email', 'delivery_unit_id',
                      'sub_depot_id', 'hourly_rate', 'is_active'), [
        ('TM001', 'John Smith', 'Sorter', 'john.smith@example.com', 'EDM',
         71, 12.75, True),
    ]),
    ('rounds', ('id', 'sub_depot_id', 'drop_number', 'is_active'), [
        ('110028', 39, 7, True),
        ('110029', 39, 8, True),
        ('1', 71, 5, True),
        ('2', 71, 6, True),
    ]),
    ('couriers', ('id', 'name', 'is_driver_for_team_member_id', 'telephone',
                  'is_active'), [
        ('C001', 'Courier One', 'TM001', '07123456789', True),
        ('C002', 'Courier Two', None, '07987654321', True),
    ]),
    ('clients', ('id', 'name', 'is_high_priority'), [
        (1, 'Amazon', False),
        (2, 'ASOS', True),
    ]),
    ('vehicles', ('id', 'registration', 'type', 'notes', 'is_active'), [
        ('V1', 'LG21XYZ', 'Van', 'Main run van', True),
    ]),
    ('hht_assets', ('serial_number', 'assigned_to_team_member_id',
                    'status'), [
        ('HHT001', 'TM001', 'Active'),
    ]),
    ('timeslot_templates', ('id', 'name', 'sub_depot_id', 'slots',
                            'max_capacity_per_slot', 'is_default'), [
        ('EDM_STANDARD', 'Edmonton Standard (Mon-Sat)', None,
         json.dumps(['09:15', '10:00']), 40, True),
        ('BRK_STANDARD', 'Barking Standard (Mon-Sat)', None,
         json.dumps(['09:15', '10:00']), 40, True),
    ]),
)


def schema_statements(path: str = SCHEMA_FILE) -> list[str]:
    """Splits the schema file into its individual statements."""
    with open(path, encoding='utf-8') as fh:
        lines = [line for line in fh.read().splitlines()
                 if not line.strip().startswith('--')]

    return [stmt.strip() for stmt in '\n'.join(lines).split(';')
            if stmt.strip()]


class SchemaAction(Action):
    name = 'schema'
    description = 'Creates every table that is still missing'

    def __init__(self):
        super().__init__()

    def perform(self):
        conn = self.parent.connect_db()
        statements = schema_statements()

        # DDL statements are committed implicitly by MySQL.
        for stmt in statements:
            database.execute(conn, stmt)
        conn.commit()

        self.parent.logger.info('schema_applied',
                                f'Ran {len(statements)} schema statements')
        print(f'Applied {len(statements)} statements from {SCHEMA_FILE}.')


class StatusAction(Action):
    name = 'status'
    description = 'Shows how many rows each table holds'
    default = True

    def __init__(self):
        super().__init__()

    def perform(self):
        counts = status.table_counts(self.parent.connect_db(),
                                     self.parent.logger)
        padding = max(len(table) for table in counts)
        for table, info in counts.items():
            count = info['count']
            print(f'{table.ljust(padding)}  '
                  f'{count if count >= 0 else "unavailable"}')


class SeedAction(Action):
    name = 'seed'
    description = 'Inserts the reference data of the Edmonton and Barking ' \
                  'delivery units'

    def __init__(self):
        super().__init__()

    def perform(self):
        conn = self.parent.connect_db()
        try:
            with database.transaction(conn):
                inserted = self.seed(conn)
        except mysql.connector.errors.Error as e:
            self.parent.logger.error('seed_failed',
                                     f'Failed to seed the database: {e.msg}')
            print(f'Failed to seed the database: {e.msg}', file=sys.stderr)
            sys.exit(1)

        for table, count in inserted.items():
            print(f'{table}: {count} new rows')

    def seed(self, conn) -> dict:
        """Inserts the reference data, leaving existing rows alone."""
        inserted = {}
        for table, columns, rows in SEED_DATA:
            inserted[table] = 0
            for row in rows:
                _, count = database.execute(
                    conn,
                    f'INSERT IGNORE INTO {table} ({", ".join(columns)}) '
                    f'VALUES ({database.placeholders(len(columns))})', row)
                inserted[table] += count

        # Logins are kept apart since their PIN must be hashed.
        _, count = database.execute(
            conn,
            'INSERT IGNORE INTO hht_logins (login_id, pin_hash, sub_depot_id, '
            'notes, is_active) VALUES (%s, %s, %s, %s, %s)',
            ('L001', hash_pin('1234'), 71, 'Main login for S71', True))
        inserted['hht_logins'] = count

        self.parent.logger.info('database_seeded', 'Seeded reference data',
                                inserted)
        return inserted


class DatabaseCommand(Command):
    """Database maintenance."""
    name = 'db'
    description = 'Manages the database schema and its reference data'

    def __init__(self, parent=None):
        super().__init__(parent)

        self.add_action(StatusAction())
        self.add_action(SchemaAction())
        self.add_action(SeedAction())


if __name__ == '__main__':
    command = DatabaseCommand()
    command.run()
