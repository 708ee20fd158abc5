#!/usr/bin/env python3

from ducops.resources.base import BaseResource


class ResourceSubDepots(BaseResource):
    endpoint = 'sub-depots'
    table = 'sub_depots'
    label = 'Sub depot'
    id_label = 'Sub Depot'
    pk_type = int
    order_by = 'name ASC'

    required = (
        ('name', 'Sub Depot Name and Delivery Unit ID are required'),
        ('delivery_unit_id',
         'Sub Depot Name and Delivery Unit ID are required'),
    )
    insert_columns = ('name', 'delivery_unit_id', 'location_description')
    update_columns = insert_columns

    reference_message = 'Invalid Delivery Unit ID.'
    dependencies = tuple(
        (table, column, f'This Sub Depot is referenced by existing {name}.')
        for table, column, name in (
            ('rounds', 'sub_depot_id', 'Rounds'),
            ('team_members', 'sub_depot_id', 'Team Members'),
            ('hht_logins', 'sub_depot_id', 'HHT Logins'),
            ('parcel_scan_entries', 'sub_depot_id', 'Parcel Scans'),
        )
    )
