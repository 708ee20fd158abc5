#!/usr/bin/env python3

from ducops.exceptions import InvalidParameter
from ducops.resources.base import BaseResource, as_int


class ResourceRounds(BaseResource):
    endpoint = 'rounds'
    table = 'rounds'
    label = 'Round'
    order_by = 'id ASC'

    required = tuple(
        (field, 'Round ID, Sub Depot ID, and Drop Number are required')
        for field in ('id', 'sub_depot_id', 'drop_number'))
    insert_columns = ('id', 'sub_depot_id', 'drop_number', 'round_name',
                      'is_active')
    defaults = {'is_active': True}
    update_columns = ('sub_depot_id', 'drop_number', 'round_name',
                      'is_active')
    bool_columns = ('is_active',)

    duplicate_message = 'A round with this ID already exists.'
    reference_message = 'Invalid Sub Depot ID.'
    dependencies = (
        ('parcel_scan_entries', 'round_id',
         'This round is referenced in parcel scan entries.'),
        ('timeslot_assignments', 'round_id',
         'This round is referenced in timeslot assignments.'),
    )

    def validate(self, body: dict):
        title = 'Drop number must be positive.'
        if as_int(body['drop_number'], title) <= 0:
            raise InvalidParameter(title)

    def validate_update(self, fields: dict):
        title = 'Drop number must be positive if provided.'
        if 'drop_number' in fields:
            drop = as_int(fields['drop_number'], title)
            if drop is None or drop <= 0:
                raise InvalidParameter(title)
