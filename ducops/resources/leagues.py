#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import NotEnoughParameters
from ducops.resources.base import BaseResource, is_blank


class LeagueReport(BaseResource):
    """Snapshot of a ranking computed by the dashboard over a period. The
    ranking itself is stored as a JSON document and never edited."""
    pk_type = int
    label = 'Report'
    order_by = 'submitted_at DESC'
    item_methods = ('GET', 'DELETE')

    # Request field holding the ranking and the column it's stored in.
    payload_field: str = None
    payload_column: str = None
    required_fields = ('periodType', 'startDate', 'endDate',
                       'submitted_by_team_member_id')

    def __init__(self, conn, logger):
        super().__init__(conn, logger)
        self.json_columns = (self.payload_field,)

    def select_stmt(self, conds: list[str] = None) -> str:
        stmt = (f'SELECT *, submitted_at AS generated_at, '
                f'submitted_by_team_member_id AS generated_by '
                f'FROM {self.table}')
        if conds:
            stmt += ' WHERE ' + ' AND '.join(conds)

        return stmt

    def check_required(self, body: dict):
        for field in self.required_fields + (self.payload_field,):
            if is_blank(body.get(field)):
                raise NotEnoughParameters('Missing required fields for '
                                          'report.')

    def insert_row(self, body: dict):
        """Inserts the report and returns its new ID."""
        key, _ = database.execute(
            self.conn,
            f'INSERT INTO {self.table} (period_type, start_date, end_date, '
            f'{self.payload_column}, submitted_by_team_member_id, '
            'submitted_at) VALUES (%s, %s, %s, %s, %s, NOW())',
            (body['periodType'], body['startDate'], body['endDate'],
             self.encode(self.payload_field, body[self.payload_field]),
             body['submitted_by_team_member_id']))

        return key

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Saves a ranking as it was shown to the user."""
        self.check_required(body)

        with self.db_errors('save'):
            key = self.insert_row(body)
        self.conn.commit()

        self.logger.info(f'{self.table}_created', f'Saved report {key}',
                         {'entries': len(body[self.payload_field])})
        return self.find(key)


class ResourceWorstCourierPerformanceReports(LeagueReport):
    endpoint = 'worst-courier-performance-reports'
    table = 'duc_worst_courier_performance_reports'
    payload_field = payload_column = 'couriers'


class ResourceWorstRoundPerformanceReports(LeagueReport):
    endpoint = 'worst-round-performance-reports'
    table = 'duc_worst_round_performance_reports'
    payload_field = payload_column = 'rounds'


class ResourceWorstCourierCarryForwardReports(LeagueReport):
    endpoint = 'worst-courier-carry-forward-reports'
    table = 'duc_worst_courier_carry_forward_reports'
    payload_field = payload_column = 'couriers'


class ResourceClientMissingLeagueReports(LeagueReport):
    endpoint = 'client-missing-league-reports'
    table = 'duc_client_missing_league_reports'
    payload_field = payload_column = 'clients'


class ResourceTopMisroutedDestinationsReports(LeagueReport):
    """Delivery units that received the most misrouted parcels."""
    endpoint = 'top-misrouted-destinations-reports'
    table = 'duc_top_misrouted_destinations_reports'
    payload_field = 'destinations'
    payload_column = 'report_data'
    required_fields = ('startDate', 'endDate', 'generatedBy')

    def select_stmt(self, conds: list[str] = None) -> str:
        stmt = ('SELECT id, report_date, report_period_start AS start_date, '
                'report_period_end AS end_date, '
                'submitted_by_team_member_id AS generated_by, '
                'submitted_at AS generated_at, report_data AS destinations, '
                'notes, created_at, updated_at '
                f'FROM {self.table}')
        if conds:
            stmt += ' WHERE ' + ' AND '.join(conds)

        return stmt

    def insert_row(self, body: dict):
        key, _ = database.execute(
            self.conn,
            f'INSERT INTO {self.table} (report_date, report_period_start, '
            'report_period_end, report_data, submitted_by_team_member_id, '
            'submitted_at, notes) VALUES (CURDATE(), %s, %s, %s, %s, NOW(), '
            '%s)',
            (body['startDate'], body['endDate'],
             self.encode(self.payload_field, body['destinations']),
             body['generatedBy'], body.get('notes')))

        return key
