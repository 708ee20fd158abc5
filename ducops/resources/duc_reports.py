#!/usr/bin/env python3

import time

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import InvalidParameter, NotImplementedYet
from ducops.resources.base import (BaseResource, as_int,
                                   parse_json_field, uploaded_files)
from ducops.uploads import UploadSession

SEGREGATED_SQL = ('SELECT sp.id, sp.duc_final_report_id, sp.barcode, '
                  'sp.client_id, c.name AS client_name, sp.count '
                  'FROM duc_segregated_parcels sp '
                  'JOIN clients c ON sp.client_id = c.id')


def report_id(prefix: str, date: str, scope) -> str:
    """Builds the identifier of a submitted report, such as
    DUC-2024-05-01-3-12345."""
    return f'{prefix}-{date}-{scope}-{str(int(time.time() * 1000))[-5:]}'


class ResourceDUCFinalReports(BaseResource):
    """End of day report of a delivery unit with the rounds that failed, the
    parcels that got segregated and any supporting documents."""
    endpoint = 'duc-final-reports'
    table = 'duc_final_reports'
    label = 'DUC Final Report'
    noun = 'DUC final report'
    alias = 'dfr'
    select_sql = ('SELECT dfr.*, tm.name AS submitted_by_name, '
                  'sd.name AS sub_depot_name, du.name AS delivery_unit_name '
                  'FROM duc_final_reports dfr '
                  'JOIN team_members tm '
                  'ON dfr.submitted_by_team_member_id = tm.id '
                  'LEFT JOIN sub_depots sd ON dfr.sub_depot_id = sd.id '
                  'LEFT JOIN delivery_units du '
                  'ON dfr.delivery_unit_id = du.id')
    order_by = 'dfr.submitted_at DESC'
    item_methods = ('GET', 'PUT')
    multipart = True

    required = tuple((field, 'Missing required fields for DUC final report.')
                     for field in ('date', 'submitted_by_team_member_id',
                                   'total_returns', 'missing_parcels_summary'))
    json_columns = ('missing_parcels_summary',)
    bool_columns = ('is_approved',)

    def expand(self, records: list[dict]) -> list[dict]:
        keys = [r['id'] for r in records]
        failed = self.fetch_children('SELECT * FROM duc_failed_rounds',
                                     'duc_final_report_id', keys,
                                     order_by='id ASC')
        segregated = self.fetch_children(SEGREGATED_SQL,
                                         'sp.duc_final_report_id', keys,
                                         order_by='sp.id ASC')
        attachments = self.fetch_children(
            'SELECT * FROM duc_report_attachments', 'duc_final_report_id',
            keys, order_by='id ASC')

        for record in records:
            record['failed_rounds'] = failed[record['id']]
            record['segregated_parcels'] = segregated[record['id']]
            record['attachments'] = attachments[record['id']]
            if record.get('total_returns') is not None:
                record['total_returns'] = int(record['total_returns'])

        return records

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Submits a report with its failed rounds, segregated parcels and
        attachments."""
        self.check_required(body)

        sub_depot_id = as_int(body.get('sub_depot_id'), 'Invalid sub depot.')
        delivery_unit_id = body.get('delivery_unit_id') or None
        total_returns = as_int(body['total_returns'],
                               'Invalid total returns.')
        failed_rounds = parse_json_field(body.get('failed_rounds'),
                                         'Invalid failed rounds.', default=[])
        segregated = parse_json_field(body.get('segregated_parcels'),
                                      'Invalid segregated parcels.',
                                      default=[])
        summary = parse_json_field(body['missing_parcels_summary'],
                                   'Invalid missing parcels summary.')

        key = report_id('DUC', body['date'],
                        sub_depot_id or delivery_unit_id or 'GLOBAL')

        with self.db_errors('create'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            database.execute(
                self.conn,
                'INSERT INTO duc_final_reports (id, date, sub_depot_id, '
                'delivery_unit_id, submitted_by_team_member_id, submitted_at, '
                'total_returns, notes, missing_parcels_summary) '
                'VALUES (%s, %s, %s, %s, %s, NOW(), %s, %s, %s)',
                (key, body['date'], sub_depot_id, delivery_unit_id,
                 body['submitted_by_team_member_id'], total_returns,
                 body.get('notes') or None, self.encode(
                     'missing_parcels_summary', summary)))

            for failed in failed_rounds:
                database.execute(
                    self.conn,
                    'INSERT INTO duc_failed_rounds (duc_final_report_id, '
                    'round_id, sub_depot_id, drop_number, comments) '
                    'VALUES (%s, %s, %s, %s, %s)',
                    (key, failed.get('round_id'), failed.get('sub_depot_id'),
                     failed.get('drop_number'), failed.get('comments')))

            for parcel in segregated:
                client_id = self.segregated_client(parcel.get('client'))
                database.execute(
                    self.conn,
                    'INSERT INTO duc_segregated_parcels (duc_final_report_id, '
                    'barcode, client_id, count) VALUES (%s, %s, %s, %s)',
                    (key, parcel.get('barcode'), client_id,
                     parcel.get('count')))

            for attachment in uploaded_files(files, 'attachments'):
                stored = uploads.store(attachment, 'duc_reports', key)
                database.execute(
                    self.conn,
                    'INSERT INTO duc_report_attachments (duc_final_report_id, '
                    'file_name, file_path, public_url, mime_type, '
                    'file_size_bytes, uploaded_at) '
                    'VALUES (%s, %s, %s, %s, %s, %s, NOW())',
                    (key, stored['file_name'], stored['file_path'],
                     stored['public_url'], stored['mime_type'],
                     stored['size']))

        self.logger.info('duc_final_reports_created',
                         f'Submitted DUC final report {key}',
                         {'failed_rounds': len(failed_rounds),
                          'segregated_parcels': len(segregated)})
        return self.find(key)

    def segregated_client(self, name: str) -> int:
        """Resolves the client of a segregated parcel."""
        row = database.fetch_one(
            self.conn, 'SELECT id FROM clients WHERE name = %s LIMIT 1',
            (name,))
        if row is None:
            raise InvalidParameter(
                f"Client '{name}' for segregated parcel not found.")

        return row['id']

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        raise NotImplementedYet()

