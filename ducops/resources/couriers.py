#!/usr/bin/env python3

from ducops.exceptions import InvalidParameter
from ducops.resources.base import BaseResource, is_blank


class ResourceCouriers(BaseResource):
    endpoint = 'couriers'
    table = 'couriers'
    label = 'Courier'
    alias = 'c'
    select_sql = ('SELECT c.*, tm.name AS driver_team_member_name '
                  'FROM couriers c '
                  'LEFT JOIN team_members tm '
                  'ON c.is_driver_for_team_member_id = tm.id')
    order_by = 'c.name ASC'

    required = (('id', 'Courier ID and Name are required'),
                ('name', 'Courier ID and Name are required'))
    insert_columns = ('id', 'name', 'is_driver_for_team_member_id', 'notes',
                      'telephone', 'is_active')
    defaults = {'is_active': True}
    update_columns = ('name', 'is_driver_for_team_member_id', 'notes',
                      'telephone', 'is_active')
    bool_columns = ('is_active',)

    duplicate_message = 'A courier with this ID already exists.'
    referenced_message = ('Courier cannot be deleted because they are '
                          'referenced in other records.')

    def validate_update(self, fields: dict):
        if 'name' in fields and is_blank(fields['name']):
            raise InvalidParameter('Name cannot be empty if provided')
