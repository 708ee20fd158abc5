#!/usr/bin/env python3

from ducops.resources.photos import PhotoResource


class ResourceScanLogs(PhotoResource):
    """Scanning sessions of the sorters on their handheld terminals."""
    endpoint = 'scan-logs'
    table = 'scan_logs'
    label = 'Scan log'
    order_by = 'date DESC, scan_start_time DESC'

    photo_field = 'scanImage'
    upload_type = 'scan_logs'

    required = tuple((field, 'Missing required fields for scan log.')
                     for field in ('date', 'user_id_team_member',
                                   'sub_depot_id', 'hht_login_id',
                                   'hht_serial', 'total_scanned'))
    insert_columns = ('date', 'user_id_team_member', 'sub_depot_id',
                      'hht_login_id', 'hht_serial', 'total_scanned',
                      'missorts', 'scan_start_time', 'scan_end_time',
                      'photo_url', 'notes')
    update_columns = tuple(col for col in insert_columns
                           if col != 'photo_url')
    nullable_columns = ('missorts', 'scan_start_time', 'scan_end_time',
                        'notes')

    int_columns = ('sub_depot_id', 'total_scanned', 'missorts')
    invalid_number_message = ('Invalid numeric value for sub_depot_id, '
                              'total_scanned, or missorts.')
