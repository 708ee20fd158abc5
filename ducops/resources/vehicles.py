#!/usr/bin/env python3

from ducops import database
from ducops.exceptions import RecordInUse
from ducops.resources.base import BaseResource


class ResourceVehicles(BaseResource):
    endpoint = 'vehicles'
    table = 'vehicles'
    label = 'Vehicle'
    order_by = 'registration ASC'

    required = tuple((field, 'Vehicle ID, Registration, and Type are required')
                     for field in ('id', 'registration', 'type'))
    insert_columns = ('id', 'registration', 'type', 'notes', 'capacity_kg',
                      'capacity_m3', 'is_active')
    defaults = {'is_active': True}
    update_columns = ('registration', 'type', 'notes', 'capacity_kg',
                      'capacity_m3', 'is_active')
    bool_columns = ('is_active',)
    numeric_columns = ('capacity_kg', 'capacity_m3')

    duplicate_message = ('A vehicle with this ID or registration already '
                         'exists.')
    update_duplicate_message = ('A vehicle with this registration already '
                                'exists.')

    def check_dependencies(self, key):
        # Waves only know about the registration plate of the van.
        if database.fetch_one(
                self.conn,
                'SELECT 1 AS found FROM waves WHERE van_reg = '
                '(SELECT registration FROM vehicles WHERE id = %s) LIMIT 1',
                (key,)) is not None:
            raise RecordInUse('Cannot delete vehicle',
                              'This vehicle is referenced in wave entries.')
