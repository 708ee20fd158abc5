#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.resources.base import BaseResource, as_bool, as_int


class ResourceMissingParcels(BaseResource):
    """Parcels scanned as missing, carried forward, misrouted or rejected,
    along with whether they were recovered afterwards."""
    endpoint = 'missing-parcels'
    table = 'parcel_scan_entries'
    label = 'Parcel scan entry'
    pk_type = int
    alias = 'pse'
    select_sql = ("SELECT pse.*, c.name AS client_name, "
                  "cr.name AS courier_name, tm.name AS sorter_name, "
                  "DATE_FORMAT(pse.created_at, '%d/%m/%Y') AS dateAdded "
                  "FROM parcel_scan_entries pse "
                  "LEFT JOIN clients c ON pse.client_id = c.id "
                  "LEFT JOIN couriers cr ON pse.courier_id = cr.id "
                  "LEFT JOIN team_members tm "
                  "ON pse.sorter_team_member_id = tm.id")
    order_by = 'pse.created_at DESC'
    batch = True

    insert_columns = ('round_id', 'drop_number', 'sub_depot_id', 'courier_id',
                      'barcode', 'sorter_team_member_id', 'client_id',
                      'time_scanned', 'scan_type', 'cfwd_courier_id',
                      'misrouted_du_id', 'rejected_courier_id', 'is_recovered',
                      'recovery_date', 'recovery_notes', 'notes')
    defaults = {'is_recovered': False}
    update_columns = insert_columns
    bool_columns = ('is_recovered',)

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        conds = []
        params = []
        if args.get('courier_id'):
            conds.append('pse.courier_id = %s')
            params.append(args['courier_id'])
        if args.get('round_id'):
            conds.append('pse.round_id = %s')
            params.append(args['round_id'])
        if args.get('dateAdded'):
            # Dates come in as DD/MM/YYYY.
            parts = args['dateAdded'].split('/')
            if len(parts) == 3:
                conds.append('DATE(pse.created_at) = %s')
                params.append(f'{parts[2]}-{parts[1]}-{parts[0]}')

        return conds, params

    def create(self, body: dict | list,
               files: MultiDict = None) -> dict | list[dict]:
        """Adds a single parcel or a whole batch of them at once."""
        parcels = body if isinstance(body, list) else [body]

        keys = []
        with self.db_errors('add'), database.transaction(self.conn):
            for parcel in parcels:
                values = self.insert_values(parcel)
                values['is_recovered'] = as_bool(values['is_recovered'])
                cols = list(values.keys())
                key, _ = database.execute(
                    self.conn,
                    f'INSERT INTO parcel_scan_entries ({", ".join(cols)}) '
                    f'VALUES ({database.placeholders(len(cols))})',
                    [values[col] for col in cols])
                keys.append(key)

        self.logger.info('parcel_scan_entries_created',
                         f'Added {len(keys)} parcel scan entries',
                         {'ids': keys})
        records = [self.find(key) for key in keys]
        return records if isinstance(body, list) else records[0]

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        fields = dict(body)
        for col in ('drop_number', 'sub_depot_id', 'client_id'):
            if col in fields:
                fields[col] = as_int(fields[col],
                                     f'Invalid numeric value for {col}')
        if 'is_recovered' in fields:
            fields['is_recovered'] = as_bool(fields['is_recovered'])

        return super().update(record_id, fields, files)
