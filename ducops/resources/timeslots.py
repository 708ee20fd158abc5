#!/usr/bin/env python3

import re

from werkzeug.datastructures import MultiDict

from ducops import timeslots
from ducops.exceptions import InvalidParameter
from ducops.resources.base import BaseResource, as_int

TIMESLOT_PATTERN = re.compile(r'^\d{2}:\d{2}$')


class ResourceTimeslotTemplates(BaseResource):
    endpoint = 'timeslot-templates'
    table = 'timeslot_templates'
    label = 'Timeslot Template'
    noun = 'timeslot template'
    pk_generator = 'uuid'
    order_by = 'name ASC'

    required = tuple((field, 'Name, Slots array, and Max Capacity are '
                             'required')
                     for field in ('name', 'slots', 'max_capacity_per_slot'))
    insert_columns = ('id', 'name', 'sub_depot_id', 'slots',
                      'max_capacity_per_slot', 'is_default', 'days_of_week')
    defaults = {'is_default': False}
    update_columns = insert_columns[1:]
    json_columns = ('slots', 'days_of_week')
    bool_columns = ('is_default',)

    reference_message = 'Invalid Sub Depot ID.'
    duplicate_message = 'A timeslot template with this ID already exists.'

    def validate(self, body: dict):
        title = 'Max capacity must be positive.'
        if as_int(body['max_capacity_per_slot'], title) <= 0:
            raise InvalidParameter(title)

    def validate_update(self, fields: dict):
        title = 'Max capacity must be positive if provided.'
        if 'max_capacity_per_slot' in fields:
            limit = as_int(fields['max_capacity_per_slot'], title)
            if limit is None or limit <= 0:
                raise InvalidParameter(title)


class ResourceTimeslotAssignments(BaseResource):
    """Rounds booked into the loading timeslots of a day."""
    endpoint = 'timeslot-assignments'
    table = 'timeslot_assignments'
    label = 'Timeslot Assignment'
    noun = 'timeslot assignment'
    pk_type = int
    order_by = 'date DESC, timeslot ASC'

    required = tuple(
        (field, 'Round ID, Sub Depot ID, Date, and Timeslot are required')
        for field in ('round_id', 'sub_depot_id', 'date', 'timeslot'))
    insert_columns = ('round_id', 'sub_depot_id', 'date', 'timeslot',
                      'assigned_by_team_member_id', 'notes')
    update_columns = insert_columns

    duplicate_message = ('This round already has a timeslot assignment for '
                         'this date.')
    reference_message = 'Invalid Round, Sub Depot, or Team Member ID.'

    def filters(self, args: MultiDict) -> tuple[list[str], list]:
        if args.get('date'):
            return ['date = %s'], [args['date']]

        return [], []

    def validate(self, body: dict):
        if not TIMESLOT_PATTERN.match(str(body['timeslot'])):
            raise InvalidParameter('Timeslot must be in HH:MM format.')

    def validate_update(self, fields: dict):
        if 'timeslot' in fields and \
                not TIMESLOT_PATTERN.match(str(fields['timeslot'] or '')):
            raise InvalidParameter('Timeslot must be in HH:MM format if '
                                   'provided.')

    def create(self, body: dict, files: MultiDict = None) -> dict:
        record = super().create(body, files)
        self.warn_over_capacity(record)

        return record

    def warn_over_capacity(self, record: dict):
        """Bookings over the limit of a slot are allowed, but worth noting."""
        assignments, templates, sub_depots = timeslots.load(self.conn,
                                                            record['date'])
        usage = timeslots.capacity(record['date'], record['sub_depot_id'],
                                   record['timeslot'], assignments, templates,
                                   sub_depots)
        if usage['used'] > usage['max']:
            self.logger.warning(
                'timeslot_over_capacity',
                f'Timeslot {record["timeslot"]} of sub depot '
                f'{record["sub_depot_id"]} on {record["date"]} is over '
                f'capacity', usage)
