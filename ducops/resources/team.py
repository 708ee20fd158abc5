#!/usr/bin/env python3

import random
import string
import time

from ducops.exceptions import InvalidParameter
from ducops.resources.base import BaseResource, is_blank


class ResourceTeam(BaseResource):
    """Everyone working at the delivery unit, drivers included."""
    endpoint = 'team'
    table = 'team_members'
    label = 'Team member'
    pk_generator = 'team'
    order_by = 'name ASC'

    required = (('name', 'Name and position are required'),
                ('position', 'Name and position are required'))
    insert_columns = ('id', 'name', 'position', 'email', 'phone_number',
                      'delivery_unit_id', 'sub_depot_id',
                      'is_driver_for_team_member_id', 'hourly_rate',
                      'is_active')
    defaults = {'is_active': True}
    update_columns = ('name', 'position', 'email', 'phone_number',
                      'delivery_unit_id', 'sub_depot_id',
                      'is_driver_for_team_member_id', 'hourly_rate',
                      'is_active', 'password_hash')
    bool_columns = ('is_active',)
    numeric_columns = ('hourly_rate',)

    duplicate_message = 'A team member with this ID or email already exists.'
    update_duplicate_message = ('Update violates a unique constraint (e.g., '
                                'email).')

    def generate_key(self) -> str:
        suffix = ''.join(random.choices(string.ascii_lowercase + string.digits,
                                        k=5))
        return f'TM-{round(time.time() * 1000)}-{suffix}'

    def validate_update(self, fields: dict):
        if 'name' in fields and is_blank(fields['name']):
            raise InvalidParameter('Name cannot be empty if provided')

    def row(self, raw):
        record = super().row(raw)
        if record is not None:
            # Never hand out the password hash.
            record.pop('password_hash', None)

        return record
