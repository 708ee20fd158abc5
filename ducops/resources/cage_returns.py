#!/usr/bin/env python3

import datetime

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import NotEnoughParameters, RecordNotFound
from ducops.resources.base import BaseResource
from ducops.resources.duc_reports import report_id

CAGES_SQL = ('SELECT nrc.id, nrc.cage_return_report_id, nrc.round_id, '
             'nrc.courier_id, c.name AS courier_name, nrc.reason, '
             'nrc.reported_at, r.drop_number AS round_drop '
             'FROM duc_non_returned_cages nrc '
             'LEFT JOIN couriers c ON nrc.courier_id = c.id '
             'LEFT JOIN rounds r ON nrc.round_id = r.id')


class ResourceCageReturnReports(BaseResource):
    """Daily report of the cages that the couriers didn't bring back."""
    endpoint = 'cage-return-reports'
    table = 'duc_cage_return_reports'
    label = 'Cage Return Report'
    noun = 'cage return report'
    alias = 'crr'
    select_sql = ('SELECT crr.*, tm.name AS submitted_by_name, '
                  'sd.name AS sub_depot_name '
                  'FROM duc_cage_return_reports crr '
                  'LEFT JOIN team_members tm '
                  'ON crr.submitted_by_team_member_id = tm.id '
                  'LEFT JOIN sub_depots sd ON crr.sub_depot_id = sd.id')
    order_by = 'crr.submitted_at DESC'

    required = tuple((field, 'Missing required fields for cage return report.')
                     for field in ('date', 'sub_depot_id',
                                   'submitted_by_team_member_id'))

    def expand(self, records: list[dict]) -> list[dict]:
        cages = self.fetch_children(CAGES_SQL, 'nrc.cage_return_report_id',
                                    [r['id'] for r in records],
                                    order_by='nrc.id ASC')
        for record in records:
            record['non_returned_cages'] = cages[record['id']]

        return records

    def insert_cages(self, key: str, cages: list[dict] | None):
        for cage in cages or []:
            database.execute(
                self.conn,
                'INSERT INTO duc_non_returned_cages (cage_return_report_id, '
                'round_id, courier_id, reason, reported_at) '
                'VALUES (%s, %s, %s, %s, %s)',
                (key, cage.get('round_id'), cage.get('courier_id'),
                 cage.get('reason'),
                 cage.get('reported_at') or datetime.datetime.now()))

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Submits a report along with the cages that weren't returned."""
        self.check_required(body)
        key = report_id('CRR', body['date'], body['sub_depot_id'])

        with self.db_errors('create'), database.transaction(self.conn):
            database.execute(
                self.conn,
                'INSERT INTO duc_cage_return_reports (id, date, sub_depot_id, '
                'submitted_by_team_member_id, submitted_at, notes) '
                'VALUES (%s, %s, %s, %s, NOW(), %s)',
                (key, body['date'], body['sub_depot_id'],
                 body['submitted_by_team_member_id'], body.get('notes')))
            self.insert_cages(key, body.get('non_returned_cages'))

        self.logger.info('duc_cage_return_reports_created',
                         f'Submitted cage return report {key}',
                         {'cages': len(body.get('non_returned_cages') or [])})
        return self.find(key)

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Replaces the report and its list of cages."""
        key = self.parse_id(record_id)
        for field, _ in self.required:
            if not body.get(field):
                raise NotEnoughParameters('Missing required fields for '
                                          'update.')

        with self.db_errors('update'), database.transaction(self.conn):
            _, count = database.execute(
                self.conn,
                'UPDATE duc_cage_return_reports SET date = %s, '
                'sub_depot_id = %s, submitted_by_team_member_id = %s, '
                'notes = %s, submitted_at = %s, updated_at = NOW() '
                'WHERE id = %s',
                (body['date'], body['sub_depot_id'],
                 body['submitted_by_team_member_id'], body.get('notes'),
                 body.get('submitted_at') or datetime.datetime.now(), key))
            if count == 0:
                raise RecordNotFound('Cage Return Report not found')

            database.execute(self.conn,
                             'DELETE FROM duc_non_returned_cages '
                             'WHERE cage_return_report_id = %s', (key,))
            self.insert_cages(key, body.get('non_returned_cages'))

        self.logger.info('duc_cage_return_reports_updated',
                         f'Updated cage return report {key}')
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        key = self.parse_id(record_id)

        with self.db_errors('delete'), database.transaction(self.conn):
            database.execute(self.conn,
                             'DELETE FROM duc_non_returned_cages '
                             'WHERE cage_return_report_id = %s', (key,))
            _, count = database.execute(
                self.conn, 'DELETE FROM duc_cage_return_reports WHERE id = %s',
                (key,))
            if count == 0:
                raise RecordNotFound('Cage Return Report not found')

        self.logger.info('duc_cage_return_reports_deleted',
                         f'Deleted cage return report {key}')
        return {'message': f'Cage Return Report {key} deleted successfully'}
