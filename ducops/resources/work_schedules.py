#!/usr/bin/env python3

from werkzeug.datastructures import MultiDict

from ducops.resources.base import BaseResource


class ResourceWorkSchedules(BaseResource):
    endpoint = 'work-schedules'
    table = 'work_schedules'
    label = 'Work schedule'
    pk_generator = 'uuid'
    alias = 'ws'
    select_sql = ('SELECT ws.*, tm.name AS team_member_name, '
                  'sd.name AS sub_depot_name '
                  'FROM work_schedules ws '
                  'JOIN team_members tm ON ws.team_member_id = tm.id '
                  'JOIN sub_depots sd ON ws.sub_depot_id = sd.id')
    order_by = 'ws.date DESC, ws.shift_start_time ASC'

    required = tuple((field, 'Missing required fields for work schedule')
                     for field in ('date', 'team_member_id', 'sub_depot_id',
                                   'scheduled_hours'))
    insert_columns = ('date', 'team_member_id', 'sub_depot_id', 'forecast_id',
                      'scheduled_hours', 'actual_hours', 'shift_start_time',
                      'shift_end_time', 'is_confirmed', 'notes')
    defaults = {'is_confirmed': False}
    update_columns = insert_columns
    bool_columns = ('is_confirmed',)
    numeric_columns = ('scheduled_hours', 'actual_hours')

    referenced_message = ('This work schedule is referenced by other records '
                          '(e.g., invoices).')

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        if args.get('date'):
            return ['ws.date = %s'], [args['date']]

        return [], []
