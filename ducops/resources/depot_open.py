#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import NotEnoughParameters
from ducops.resources.base import BaseResource, is_blank


class ResourceDepotOpen(BaseResource):
    """Time the depot (or one of its sub depots) opened on a given day."""
    endpoint = 'depot-open'
    table = 'depot_open_records'
    label = 'Depot open record'
    pk_type = int
    order_by = 'sub_depot_id IS NOT NULL, sub_depot_id ASC, time ASC'
    item_methods = ()

    required = (('date', 'Date and Time are required'),
                ('time', 'Date and Time are required'))

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        if not args.get('date'):
            raise NotEnoughParameters('Date parameter is required')

        return ['date = %s'], [args['date']]

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Records when the depot opened, replacing any previous record for
        the same day and sub depot."""
        self.check_required(body)
        sub_depot_id = body.get('sub_depot_id')
        if is_blank(sub_depot_id):
            sub_depot_id = None

        # The whole depot is stored with a NULL sub depot, which a unique key
        # can't guard, so the lookup is done under a row lock.
        scope = 'sub_depot_id IS NULL' if sub_depot_id is None \
            else 'sub_depot_id = %s'
        params = [body['date']] + ([] if sub_depot_id is None
                                   else [sub_depot_id])
        with self.db_errors('create or update'):
            with database.transaction(self.conn):
                existing = database.fetch_one(
                    self.conn,
                    'SELECT id FROM depot_open_records WHERE date = %s AND '
                    f'{scope} FOR UPDATE', params)

                if existing is not None:
                    key = existing['id']
                    database.execute(
                        self.conn,
                        'UPDATE depot_open_records SET time = %s, notes = %s, '
                        'team_member_id = %s, updated_at = NOW() '
                        'WHERE id = %s',
                        (body['time'], body.get('notes'),
                         body.get('team_member_id'), key))
                else:
                    key, _ = database.execute(
                        self.conn,
                        'INSERT INTO depot_open_records (date, time, notes, '
                        'sub_depot_id, team_member_id) '
                        'VALUES (%s, %s, %s, %s, %s)',
                        (body['date'], body['time'], body.get('notes'),
                         sub_depot_id, body.get('team_member_id')))

        self.logger.info('depot_open_saved',
                         f'Depot open at {body["time"]} on {body["date"]}',
                         {'sub_depot_id': sub_depot_id,
                          'replaced': existing is not None})
        return self.find(key)
