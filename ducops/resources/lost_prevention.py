#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import RecordNotFound
from ducops.resources.base import BaseResource, as_bool, parse_json_field
from ducops.resources.duc_reports import report_id
from ducops.uploads import UploadSession

# File fields and the description given to their attachments.
ATTACHMENT_FIELDS = (
    ('cctvFile', 'CCTV footage'),
    ('vanSearchFile', 'Van search photo'),
)

REPORT_COLUMNS = ('date_of_incident', 'submitted_by_team_member_id',
                  'courier_id', 'incident_description', 'cctv_viewed',
                  'cctv_details', 'van_search_conducted',
                  'van_search_findings', 'action_taken',
                  'police_report_number', 'status', 'comments')


class ResourceLostPreventionReports(BaseResource):
    """Investigations into parcels lost by a courier, with the rounds
    involved and the CCTV and van search evidence."""
    endpoint = 'lost-prevention-reports'
    table = 'duc_lost_prevention_reports'
    label = 'Lost Prevention Report'
    noun = 'report'
    alias = 'lpr'
    select_sql = ('SELECT lpr.*, tm.name AS submitted_by_name, '
                  'c.name AS courier_name '
                  'FROM duc_lost_prevention_reports lpr '
                  'JOIN team_members tm '
                  'ON lpr.submitted_by_team_member_id = tm.id '
                  'JOIN couriers c ON lpr.courier_id = c.id')
    order_by = 'lpr.submitted_at DESC'
    multipart = True

    required = tuple((field, 'Missing required fields for lost prevention '
                             'report.')
                     for field in ('date_of_incident',
                                   'submitted_by_team_member_id', 'courier_id',
                                   'incident_description', 'status',
                                   'round_ids'))
    bool_columns = ('cctv_viewed', 'van_search_conducted')

    def expand(self, records: list[dict]) -> list[dict]:
        keys = [r['id'] for r in records]
        attachments = self.fetch_children(
            'SELECT * FROM duc_lost_prevention_report_attachments',
            'lost_prevention_report_id', keys, order_by='id ASC')
        rounds = self.fetch_children(
            'SELECT lost_prevention_report_id, round_id '
            'FROM duc_lost_prevention_report_rounds',
            'lost_prevention_report_id', keys)

        for record in records:
            record['attachments'] = attachments[record['id']]
            record['round_ids'] = [r['round_id'] for r in rounds[record['id']]]

        return records

    def insert_rounds(self, key: str, round_ids: list):
        for round_id in round_ids:
            database.execute(
                self.conn,
                'INSERT INTO duc_lost_prevention_report_rounds '
                '(lost_prevention_report_id, round_id) VALUES (%s, %s)',
                (key, round_id))

    def insert_attachments(self, key: str, files: MultiDict,
                           uploads: UploadSession) -> int:
        """Stores the evidence files that were sent. Returns how many."""
        count = 0
        for field, description in ATTACHMENT_FIELDS:
            file = files.get(field) if files is not None else None
            if not file:
                continue

            stored = uploads.store(file, 'lost_prevention_reports', key)
            database.execute(
                self.conn,
                'INSERT INTO duc_lost_prevention_report_attachments '
                '(lost_prevention_report_id, file_name, file_path, '
                'public_url, description, mime_type, file_size_bytes) '
                'VALUES (%s, %s, %s, %s, %s, %s, %s)',
                (key, stored['file_name'], stored['file_path'],
                 stored['public_url'], description, stored['mime_type'],
                 stored['size']))
            count += 1

        return count

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Submits a report with its rounds and evidence."""
        self.check_required(body)
        round_ids = parse_json_field(body['round_ids'], 'Invalid round IDs.',
                                     default=[])

        values = {col: body.get(col) or None for col in REPORT_COLUMNS}
        for col in self.bool_columns:
            values[col] = as_bool(body.get(col, False))

        key = report_id('LPR', body['date_of_incident'], body['courier_id'])
        cols = list(values.keys())
        with self.db_errors('create'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            database.execute(
                self.conn,
                f'INSERT INTO duc_lost_prevention_reports (id, submitted_at, '
                f'{", ".join(cols)}) '
                f'VALUES (%s, NOW(), {database.placeholders(len(cols))})',
                [key] + [values[col] for col in cols])
            self.insert_rounds(key, round_ids)
            attached = self.insert_attachments(key, files, uploads)

        self.logger.info('duc_lost_prevention_reports_created',
                         f'Submitted lost prevention report {key}',
                         {'rounds': round_ids, 'attachments': attached})
        return self.find(key)

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Updates the fields that were sent, replaces the rounds when given
        and appends any new evidence."""
        key = self.parse_id(record_id)
        fields = {col: body[col] for col in REPORT_COLUMNS
                  if body.get(col) is not None}
        for col in self.bool_columns:
            if col in fields:
                fields[col] = as_bool(fields[col])

        round_ids = None
        if body.get('round_ids'):
            round_ids = parse_json_field(body['round_ids'],
                                         'Invalid round IDs.', default=[])

        with self.db_errors('update'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            if not database.exists(self.conn, self.table, 'id', key):
                raise RecordNotFound('Report not found for update.')

            if fields:
                database.execute(
                    self.conn,
                    'UPDATE duc_lost_prevention_reports SET '
                    f'{database.assignments(fields)}, updated_at = NOW() '
                    'WHERE id = %s', list(fields.values()) + [key])

            if round_ids is not None:
                database.execute(
                    self.conn,
                    'DELETE FROM duc_lost_prevention_report_rounds '
                    'WHERE lost_prevention_report_id = %s', (key,))
                self.insert_rounds(key, round_ids)

            attached = self.insert_attachments(key, files, uploads)

        self.logger.info('duc_lost_prevention_reports_updated',
                         f'Updated lost prevention report {key}',
                         {'fields': list(fields.keys()), 'rounds': round_ids,
                          'attachments': attached})
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        """Deletes a report along with its evidence files."""
        key = self.parse_id(record_id)

        with self.db_errors('delete'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            for attachment in database.fetch_all(
                    self.conn,
                    'SELECT public_url FROM '
                    'duc_lost_prevention_report_attachments '
                    'WHERE lost_prevention_report_id = %s', (key,)):
                uploads.delete_later(attachment['public_url'])

            database.execute(
                self.conn,
                'DELETE FROM duc_lost_prevention_report_attachments '
                'WHERE lost_prevention_report_id = %s', (key,))
            database.execute(self.conn,
                             'DELETE FROM duc_lost_prevention_report_rounds '
                             'WHERE lost_prevention_report_id = %s', (key,))
            _, count = database.execute(
                self.conn,
                'DELETE FROM duc_lost_prevention_reports WHERE id = %s',
                (key,))
            if count == 0:
                raise RecordNotFound('Lost Prevention Report not found')

        self.logger.info('duc_lost_prevention_reports_deleted',
                         f'Deleted lost prevention report {key}')
        return {'message': f'Report {key} deleted successfully'}
