#!/usr/bin/env python3

import re

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import InvalidParameter
from ducops.resources.base import BaseResource

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def composite_id(team_member_id: str, date: str) -> str:
    """Identifier the clients use for an availability record."""
    return f'{team_member_id}__{date}'


class ResourceAvailability(BaseResource):
    """Days a team member is (or isn't) available for work. There's only ever
    one record per person and day, so writing one replaces what was there."""
    endpoint = 'availability'
    table = 'availability_records'
    label = 'Availability record'
    noun = 'availability'
    order_by = 'date ASC, team_member_id ASC'
    item_methods = ('DELETE',)

    required = tuple((field, 'Team Member ID, Date, and Status are required')
                     for field in ('team_member_id', 'date', 'status'))
    insert_columns = ('team_member_id', 'date', 'status', 'notes',
                      'start_time', 'end_time')

    reference_message = 'Invalid Team Member ID.'

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        conds = []
        params = []
        if args.get('teamMemberId'):
            conds.append('team_member_id = %s')
            params.append(args['teamMemberId'])
        if args.get('startDate'):
            conds.append('date >= %s')
            params.append(args['startDate'])
        if args.get('endDate'):
            conds.append('date <= %s')
            params.append(args['endDate'])

        return conds, params

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Creates or replaces the availability of a team member on a day."""
        self.check_required(body)
        values = self.insert_values(body)

        cols = list(values.keys())
        with self.db_errors('save'):
            database.execute(
                self.conn,
                f'INSERT INTO availability_records ({", ".join(cols)}) '
                f'VALUES ({database.placeholders(len(cols))}) '
                'ON DUPLICATE KEY UPDATE status = VALUES(status), '
                'notes = VALUES(notes), start_time = VALUES(start_time), '
                'end_time = VALUES(end_time), updated_at = NOW()',
                [values[col] for col in cols])
        self.conn.commit()

        record = self.row(database.fetch_one(
            self.conn,
            'SELECT * FROM availability_records '
            'WHERE team_member_id = %s AND date = %s',
            (body['team_member_id'], body['date'])))
        record['id'] = composite_id(body['team_member_id'], body['date'])

        self.logger.info('availability_saved',
                         f'Saved availability of {body["team_member_id"]} on '
                         f'{body["date"]}', {'status': body['status']})
        return record

    def delete(self, record_id: str) -> dict:
        """Removes the availability of a team member on a day. Deleting a
        record that doesn't exist is not an error."""
        team_member_id, _, date = record_id.partition('__')
        if not team_member_id or not date:
            raise InvalidParameter('Invalid composite ID format. Expected '
                                   'teamMemberId__YYYY-MM-DD')
        if not DATE_PATTERN.match(date):
            raise InvalidParameter('Invalid date format in composite ID. '
                                   'Expected YYYY-MM-DD')

        with self.db_errors('delete'):
            _, count = database.execute(
                self.conn,
                'DELETE FROM availability_records '
                'WHERE team_member_id = %s AND date = %s',
                (team_member_id, date))
        self.conn.commit()

        if count == 0:
            return {'message': f'Availability record for {team_member_id} on '
                               f'{date} not found or already deleted.'}

        self.logger.info('availability_deleted',
                         f'Deleted availability of {team_member_id} on {date}')
        return {'message': f'Availability record for {team_member_id} on '
                           f'{date} deleted successfully.'}
