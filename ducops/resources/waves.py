#!/usr/bin/env python3

from ducops.resources.photos import PhotoResource


class ResourceWaves(PhotoResource):
    """Vans arriving at the depot with the parcels of the day."""
    endpoint = 'waves'
    table = 'waves'
    label = 'Wave entry'
    order_by = 'date DESC, time DESC'

    photo_field = 'waveImage'
    upload_type = 'waves'

    required = tuple((field, 'Missing required fields for wave entry.')
                     for field in ('van_reg', 'vehicle_type', 'date', 'time',
                                   'pallet_count'))
    insert_columns = ('van_reg', 'vehicle_type', 'date', 'time',
                      'pallet_count', 'photo_url', 'notes', 'sub_depot_id',
                      'team_member_id')
    update_columns = ('van_reg', 'vehicle_type', 'date', 'time',
                      'pallet_count', 'notes', 'sub_depot_id',
                      'team_member_id')
    nullable_columns = ('notes', 'sub_depot_id', 'team_member_id')

    int_columns = ('pallet_count', 'sub_depot_id')
    invalid_number_message = 'Invalid pallet count.'
