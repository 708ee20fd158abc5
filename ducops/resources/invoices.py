#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import NotEnoughParameters, RecordNotFound
from ducops.resources.base import (BaseResource, as_bool, as_float,
                                   parse_json_field)
from ducops.uploads import UploadSession

LINE_COLUMNS = ('work_schedule_id', 'date', 'description', 'hours', 'rate',
                'amount', 'type')
LINE_NUMBERS = ('hours', 'rate', 'amount')


class ResourceInvoices(BaseResource):
    """Invoices sent in by the team members for the hours they worked in a
    pay period."""
    endpoint = 'invoices'
    table = 'invoices'
    label = 'Invoice'
    pk_generator = 'uuid'
    alias = 'i'
    select_sql = ("SELECT i.*, tm.name AS team_member_name, "
                  "CONCAT(pp.period_number, '/', pp.year) AS pay_period_info "
                  "FROM invoices i "
                  "JOIN team_members tm ON i.team_member_id = tm.id "
                  "JOIN pay_periods pp ON i.pay_period_id = pp.id")
    order_by = 'i.invoice_date DESC, i.created_at DESC'
    multipart = True

    required = tuple((field, 'Missing required fields for invoice.')
                     for field in ('pay_period_id', 'team_member_id',
                                   'invoice_date', 'total_hours',
                                   'total_amount', 'status', 'lines'))
    insert_columns = ('pay_period_id', 'team_member_id', 'invoice_number',
                      'invoice_date', 'due_date', 'total_hours',
                      'total_amount', 'sub_total_amount', 'vat_amount',
                      'status', 'notes', 'team_member_name',
                      'pay_period_info')
    numeric_columns = ('total_hours', 'total_amount', 'sub_total_amount',
                       'vat_amount')

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        conds = []
        params = []
        for col in ('pay_period_id', 'team_member_id', 'status'):
            if args.get(col):
                conds.append(f'i.{col} = %s')
                params.append(args[col])

        return conds, params

    def expand(self, records: list[dict]) -> list[dict]:
        lines = self.fetch_children('SELECT * FROM invoice_lines',
                                    'invoice_id', [r['id'] for r in records],
                                    order_by='date ASC')
        for record in records:
            record['lines'] = lines[record['id']]
            for line in record['lines']:
                for col in LINE_NUMBERS:
                    if line.get(col) is not None:
                        line[col] = float(line[col])

        return records

    def parse_form(self, body: dict) -> tuple[dict, list[dict]]:
        """Extracts the invoice and its lines from the submitted form."""
        values = {col: body.get(col) or None for col in self.insert_columns}
        for col in self.numeric_columns:
            values[col] = as_float(values[col], f'Invalid value for {col}.')

        lines = parse_json_field(body.get('lines'), 'Invalid invoice lines.',
                                 default=[])
        for line in lines:
            for col in LINE_NUMBERS:
                line[col] = as_float(line.get(col),
                                     f'Invalid {col} in invoice line.')

        return values, lines

    def insert_lines(self, key: str, lines: list[dict]):
        for line in lines:
            database.execute(
                self.conn,
                f'INSERT INTO invoice_lines (invoice_id, '
                f'{", ".join(LINE_COLUMNS)}) '
                f'VALUES ({database.placeholders(len(LINE_COLUMNS) + 1)})',
                [key] + [line.get(col) for col in LINE_COLUMNS])

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Creates an invoice, its lines and stores the attachment."""
        self.check_required(body)
        values, lines = self.parse_form(body)
        values['id'] = self.generate_key()

        attachment = files.get('attachment') if files is not None else None
        with self.db_errors('create'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            if attachment:
                values['attachment_url'] = uploads.store(
                    attachment, 'invoices')['public_url']

            cols = list(values.keys())
            database.execute(
                self.conn,
                f'INSERT INTO invoices ({", ".join(cols)}) '
                f'VALUES ({database.placeholders(len(cols))})',
                [values[col] for col in cols])
            self.insert_lines(values['id'], lines)

        self.logger.info('invoices_created',
                         f'Created invoice {values["id"]} for '
                         f'{values["team_member_id"]}',
                         {'lines': len(lines),
                          'total_amount': values['total_amount']})
        return self.find(values['id'])

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Replaces an invoice, its lines and optionally its attachment."""
        key = self.parse_id(record_id)
        for field, _ in self.required:
            if not body.get(field):
                raise NotEnoughParameters('Missing required fields for '
                                          'invoice update.')
        values, lines = self.parse_form(body)
        values['paid_date'] = body.get('paid_date') or None

        attachment = files.get('attachment') if files is not None else None
        with self.db_errors('update'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            current = database.fetch_one(
                self.conn,
                'SELECT attachment_url FROM invoices WHERE id = %s FOR UPDATE',
                (key,))
            if current is None:
                raise RecordNotFound('Invoice not found')

            values['attachment_url'] = current['attachment_url']
            if as_bool(body.get('remove_attachment', False)) and \
                    current['attachment_url']:
                uploads.delete_later(current['attachment_url'])
                values['attachment_url'] = None
            elif attachment:
                uploads.delete_later(current['attachment_url'])
                values['attachment_url'] = uploads.store(
                    attachment, 'invoices', key)['public_url']

            database.execute(
                self.conn,
                f'UPDATE invoices SET {database.assignments(values)}, '
                'updated_at = NOW() WHERE id = %s',
                list(values.values()) + [key])
            database.execute(self.conn,
                             'DELETE FROM invoice_lines WHERE invoice_id = %s',
                             (key,))
            self.insert_lines(key, lines)

        self.logger.info('invoices_updated', f'Updated invoice {key}',
                         {'lines': len(lines)})
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        """Deletes an invoice, its lines and its attachment."""
        key = self.parse_id(record_id)

        with self.db_errors('delete'), \
                UploadSession(self.logger) as uploads, \
                database.transaction(self.conn):
            current = database.fetch_one(
                self.conn, 'SELECT attachment_url FROM invoices WHERE id = %s',
                (key,))
            if current is None:
                raise RecordNotFound('Invoice not found')

            uploads.delete_later(current['attachment_url'])
            database.execute(self.conn,
                             'DELETE FROM invoice_lines WHERE invoice_id = %s',
                             (key,))
            database.execute(self.conn, 'DELETE FROM invoices WHERE id = %s',
                             (key,))

        self.logger.info('invoices_deleted', f'Deleted invoice {key}')
        return {'message': f'Invoice {key} deleted successfully'}
