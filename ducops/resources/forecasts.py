#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops import database
from ducops.exceptions import RecordNotFound
from ducops.resources.base import BaseResource

VOLUMES_SQL = ('SELECT fv.id, fv.forecast_id, fv.sub_depot_id, '
               'sd.name AS sub_depot_name, fv.volume, fv.notes '
               'FROM forecast_volumes fv '
               'JOIN sub_depots sd ON fv.sub_depot_id = sd.id')


class ResourceForecasts(BaseResource):
    """Parcel volume forecasts for a day, split by sub depot."""
    endpoint = 'forecasts'
    table = 'forecasts'
    label = 'Forecast'
    pk_generator = 'uuid'
    alias = 'f'
    select_sql = ("SELECT f.*, CONCAT(pp.period_number, '/', pp.year) "
                  "AS pay_period_info "
                  "FROM forecasts f "
                  "LEFT JOIN pay_periods pp ON f.pay_period_id = pp.id")
    order_by = 'f.forecast_for_date DESC'

    required = (('forecast_for_date', 'Forecast date is required'),)
    insert_columns = ('forecast_for_date', 'pay_period_id', 'total_volume',
                      'calculated_hours', 'planned_shift_length', 'notes')
    numeric_columns = ('total_volume', 'calculated_hours',
                       'planned_shift_length')

    dependencies = (
        ('work_schedules', 'forecast_id',
         'This forecast is linked to existing work schedules. Please remove '
         'those links first.'),
    )

    def expand(self, records: list[dict]) -> list[dict]:
        volumes = self.fetch_children(VOLUMES_SQL, 'fv.forecast_id',
                                      [r['id'] for r in records],
                                      order_by='fv.id ASC')
        for record in records:
            record['volumes'] = volumes[record['id']]
            for volume in record['volumes']:
                if volume['volume'] is not None:
                    volume['volume'] = float(volume['volume'])

        return records

    def insert_volumes(self, key: str, volumes: list[dict] | None):
        for volume in volumes or []:
            database.execute(
                self.conn,
                'INSERT INTO forecast_volumes (forecast_id, sub_depot_id, '
                'volume, notes) VALUES (%s, %s, %s, %s)',
                (key, volume.get('sub_depot_id'), volume.get('volume'),
                 volume.get('notes')))

    def create(self, body: dict, files: MultiDict = None) -> dict:
        """Creates a forecast along with its volumes."""
        self.check_required(body)
        values = self.insert_values(body)

        cols = list(values.keys())
        with self.db_errors('create'), database.transaction(self.conn):
            database.execute(
                self.conn,
                f'INSERT INTO forecasts ({", ".join(cols)}) '
                f'VALUES ({database.placeholders(len(cols))})',
                [values[col] for col in cols])
            self.insert_volumes(values['id'], body.get('volumes'))

        self.logger.info('forecasts_created',
                         f'Created forecast {values["id"]} for '
                         f'{body["forecast_for_date"]}',
                         {'volumes': len(body.get('volumes') or [])})
        return self.find(values['id'])

    def update(self, record_id: str, body: dict,
               files: MultiDict = None) -> dict:
        """Replaces a forecast and all of its volumes."""
        key = self.parse_id(record_id)

        with self.db_errors('update'), database.transaction(self.conn):
            _, count = database.execute(
                self.conn,
                'UPDATE forecasts SET forecast_for_date = %s, '
                'pay_period_id = %s, total_volume = %s, '
                'calculated_hours = %s, planned_shift_length = %s, '
                'notes = %s, updated_at = NOW() WHERE id = %s',
                [body.get(col) for col in self.insert_columns] + [key])
            if count == 0:
                raise RecordNotFound('Forecast not found')

            database.execute(self.conn,
                             'DELETE FROM forecast_volumes '
                             'WHERE forecast_id = %s', (key,))
            self.insert_volumes(key, body.get('volumes'))

        self.logger.info('forecasts_updated', f'Updated forecast {key}',
                         {'volumes': len(body.get('volumes') or [])})
        return self.find(key)

    def delete(self, record_id: str) -> dict:
        """Deletes a forecast and its volumes, unless it's being used by a
        work schedule."""
        key = self.parse_id(record_id)

        with self.db_errors('delete'), database.transaction(self.conn):
            self.check_dependencies(key)
            database.execute(self.conn,
                             'DELETE FROM forecast_volumes '
                             'WHERE forecast_id = %s', (key,))
            _, count = database.execute(
                self.conn, 'DELETE FROM forecasts WHERE id = %s', (key,))
            if count == 0:
                raise RecordNotFound('Forecast not found')

        self.logger.info('forecasts_deleted', f'Deleted forecast {key}')
        return {'message': f'Forecast {key} deleted successfully'}
