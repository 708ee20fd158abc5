#!/usr/bin/env python3

import mysql.connector.errors

from ducops import database
from ducops.database import Connection
from ducops.logger import Logger

# Every table in the schema, in the order they are reported.
TABLES = (
    'delivery_units', 'sub_depots', 'team_members', 'rounds', 'couriers',
    'clients', 'vehicles', 'depot_open_records', 'waves', 'hht_assets',
    'hht_logins', 'scan_logs', 'parcel_scan_entries', 'pay_periods',
    'forecasts', 'forecast_volumes', 'work_schedules', 'invoice_lines',
    'invoices', 'duc_final_reports', 'duc_failed_rounds',
    'duc_segregated_parcels', 'duc_report_attachments', 'timeslot_templates',
    'timeslot_assignments', 'email_triggers', 'availability_records',
    'cage_audits', 'cage_audit_missorted_parcels', 'cage_audit_images',
    'duc_cage_return_reports', 'duc_non_returned_cages',
    'duc_lost_prevention_reports', 'duc_lost_prevention_report_attachments',
    'duc_lost_prevention_report_rounds', 'duc_daily_missort_summary_reports',
    'duc_weekly_missing_summary_reports',
    'duc_worst_courier_performance_reports',
    'duc_worst_round_performance_reports', 'duc_client_missing_league_reports',
    'duc_top_misrouted_destinations_reports',
    'duc_worst_courier_carry_forward_reports',
)

SEED_MESSAGE = ('Database seeding via API is a placeholder. No data was '
                'changed. Current counts returned.')


def table_counts(conn: Connection, logger: Logger = None) -> dict:
    """Counts the rows of every table. Tables that can't be counted, usually
    because they don't exist yet, are reported with a count of -1."""
    counts = {}
    for table in TABLES:
        try:
            row = database.fetch_one(conn,
                                     f'SELECT COUNT(*) AS count FROM {table}')
            counts[table] = {'count': int(row['count'])}
        except mysql.connector.errors.Error as e:
            if logger is not None:
                logger.warning('table_count_failed',
                               f'Unable to count the rows of {table}',
                               {'error': e.msg})
            counts[table] = {'count': -1}

    return counts
